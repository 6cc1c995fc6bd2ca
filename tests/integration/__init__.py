"""
Integration tests for modbuild.

These tests drive complete builds through the Builder with in-process tool
providers and a fake repository: module resolution, compilation, packaging
and the resulting archives.
"""

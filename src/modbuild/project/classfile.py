"""Compiled module descriptor reader.

Reads the ``Module`` and ``ModuleMainClass`` attributes of a compiled
``module-info.class`` into a ModuleDeclaration, so that modules shipped as
artifacts can be surveyed the same way as project sources.

Class file layout (JVM specification, chapter 4):

    magic, minor, major, constant pool, access flags, this/super class,
    interfaces, fields, methods, attributes

Only the constant pool and the class-level attributes are interpreted;
fields and methods are skipped.
"""

import struct
from typing import Optional

from modbuild.errors import ModbuildError

from .models import ModuleDeclaration, Provision, Requirement

CLASS_MAGIC = 0xCAFEBABE

# Constant pool tags
CONSTANT_UTF8 = 1
CONSTANT_INTEGER = 3
CONSTANT_FLOAT = 4
CONSTANT_LONG = 5
CONSTANT_DOUBLE = 6
CONSTANT_CLASS = 7
CONSTANT_STRING = 8
CONSTANT_FIELDREF = 9
CONSTANT_METHODREF = 10
CONSTANT_INTERFACE_METHODREF = 11
CONSTANT_NAME_AND_TYPE = 12
CONSTANT_METHOD_HANDLE = 15
CONSTANT_METHOD_TYPE = 16
CONSTANT_DYNAMIC = 17
CONSTANT_INVOKE_DYNAMIC = 18
CONSTANT_MODULE = 19
CONSTANT_PACKAGE = 20

# Size in bytes of constant pool entries with a fixed layout
_FIXED_ENTRY_SIZES = {
    CONSTANT_INTEGER: 4,
    CONSTANT_FLOAT: 4,
    CONSTANT_LONG: 8,
    CONSTANT_DOUBLE: 8,
    CONSTANT_CLASS: 2,
    CONSTANT_STRING: 2,
    CONSTANT_FIELDREF: 4,
    CONSTANT_METHODREF: 4,
    CONSTANT_INTERFACE_METHODREF: 4,
    CONSTANT_NAME_AND_TYPE: 4,
    CONSTANT_METHOD_HANDLE: 3,
    CONSTANT_METHOD_TYPE: 2,
    CONSTANT_DYNAMIC: 4,
    CONSTANT_INVOKE_DYNAMIC: 4,
    CONSTANT_MODULE: 2,
    CONSTANT_PACKAGE: 2,
}

ACC_OPEN = 0x0020
ACC_TRANSITIVE = 0x0020
ACC_STATIC_PHASE = 0x0040
ACC_SYNTHETIC = 0x1000
ACC_MANDATED = 0x8000


class ClassFormatError(ModbuildError):
    """A compiled module descriptor is malformed."""


class _Reader:
    def __init__(self, data: bytes):
        self.data = data
        self.offset = 0

    def u1(self) -> int:
        return self._unpack(">B", 1)

    def u2(self) -> int:
        return self._unpack(">H", 2)

    def u4(self) -> int:
        return self._unpack(">I", 4)

    def skip(self, count: int) -> None:
        if self.offset + count > len(self.data):
            raise ClassFormatError("unexpected end of class file")
        self.offset += count

    def bytes(self, count: int) -> bytes:
        start = self.offset
        self.skip(count)
        return self.data[start : self.offset]

    def _unpack(self, fmt: str, size: int) -> int:
        if self.offset + size > len(self.data):
            raise ClassFormatError("unexpected end of class file")
        (value,) = struct.unpack_from(fmt, self.data, self.offset)
        self.offset += size
        return value


class _ConstantPool:
    def __init__(self, reader: _Reader):
        count = reader.u2()
        self.entries: list[Optional[tuple[int, object]]] = [None] * count
        index = 1
        while index < count:
            tag = reader.u1()
            if tag == CONSTANT_UTF8:
                length = reader.u2()
                raw = reader.bytes(length)
                # Modified UTF-8 only differs for NUL and supplementary characters
                self.entries[index] = (tag, raw.decode("utf-8", errors="replace"))
            elif tag in (CONSTANT_CLASS, CONSTANT_MODULE, CONSTANT_PACKAGE, CONSTANT_STRING):
                self.entries[index] = (tag, reader.u2())
            elif tag in _FIXED_ENTRY_SIZES:
                reader.skip(_FIXED_ENTRY_SIZES[tag])
            else:
                raise ClassFormatError(f"unknown constant pool tag {tag} at index {index}")
            # Long and double entries occupy two slots
            index += 2 if tag in (CONSTANT_LONG, CONSTANT_DOUBLE) else 1

    def utf8(self, index: int) -> str:
        entry = self._entry(index)
        if entry[0] != CONSTANT_UTF8:
            raise ClassFormatError(f"constant {index} is not a UTF-8 entry")
        return str(entry[1])

    def optional_utf8(self, index: int) -> Optional[str]:
        return self.utf8(index) if index else None

    def named(self, index: int, tag: int) -> str:
        """Resolve a Class, Module or Package entry to its (dotted) name."""
        entry = self._entry(index)
        if entry[0] != tag:
            raise ClassFormatError(f"constant {index} has tag {entry[0]}, expected {tag}")
        return self.utf8(int(entry[1])).replace("/", ".")  # type: ignore[arg-type]

    def _entry(self, index: int) -> tuple[int, object]:
        if not 0 < index < len(self.entries) or self.entries[index] is None:
            raise ClassFormatError(f"invalid constant pool index {index}")
        return self.entries[index]  # type: ignore[return-value]


def _skip_members(reader: _Reader) -> None:
    for _ in range(reader.u2()):
        reader.skip(6)
        for _ in range(reader.u2()):
            reader.skip(2)
            reader.skip(reader.u4())


def read_module_descriptor(data: bytes) -> ModuleDeclaration:
    """Read a compiled module descriptor.

    Args:
        data: Content of a module-info.class file

    Returns:
        Declaration with requires (flags mapped to modifiers, compiled
        versions kept), exports, opens, uses, provides and main class

    Raises:
        ClassFormatError: If the data is not a module descriptor
    """
    reader = _Reader(data)
    if reader.u4() != CLASS_MAGIC:
        raise ClassFormatError("not a class file (bad magic number)")
    reader.skip(4)  # minor and major version
    pool = _ConstantPool(reader)
    reader.skip(6)  # access flags, this class, super class
    reader.skip(2 * reader.u2())  # interfaces
    _skip_members(reader)  # fields
    _skip_members(reader)  # methods

    module_body: Optional[bytes] = None
    main_class: Optional[str] = None
    for _ in range(reader.u2()):
        name = pool.utf8(reader.u2())
        body = reader.bytes(reader.u4())
        if name == "Module":
            module_body = body
        elif name == "ModuleMainClass":
            main_class = pool.named(struct.unpack(">H", body[:2])[0], CONSTANT_CLASS)

    if module_body is None:
        raise ClassFormatError("class file has no Module attribute")
    return _read_module_attribute(_Reader(module_body), pool, main_class)


def _read_module_attribute(reader: _Reader, pool: _ConstantPool, main_class: Optional[str]) -> ModuleDeclaration:
    name = pool.named(reader.u2(), CONSTANT_MODULE)
    flags = reader.u2()
    version = pool.optional_utf8(reader.u2())

    requires: list[Requirement] = []
    for _ in range(reader.u2()):
        required = pool.named(reader.u2(), CONSTANT_MODULE)
        required_flags = reader.u2()
        required_version = pool.optional_utf8(reader.u2())
        modifiers = set()
        if required_flags & ACC_TRANSITIVE:
            modifiers.add("transitive")
        if required_flags & ACC_STATIC_PHASE:
            modifiers.add("static")
        if required_flags & ACC_MANDATED:
            modifiers.add("mandated")
        if required_flags & ACC_SYNTHETIC:
            modifiers.add("synthetic")
        requires.append(Requirement(required, required_version, frozenset(modifiers)))

    def packages() -> list[str]:
        found = []
        for _ in range(reader.u2()):
            found.append(pool.named(reader.u2(), CONSTANT_PACKAGE))
            reader.skip(2)  # flags
            reader.skip(2 * reader.u2())  # qualified targets
        return found

    exports = packages()
    opens = packages()
    uses = [pool.named(reader.u2(), CONSTANT_CLASS) for _ in range(reader.u2())]
    provides = []
    for _ in range(reader.u2()):
        service = pool.named(reader.u2(), CONSTANT_CLASS)
        implementations = tuple(pool.named(reader.u2(), CONSTANT_CLASS) for _ in range(reader.u2()))
        provides.append(Provision(service, implementations))

    return ModuleDeclaration(
        name=name,
        open=bool(flags & ACC_OPEN),
        requires=tuple(requires),
        exports=tuple(exports),
        opens=tuple(opens),
        uses=tuple(uses),
        provides=tuple(provides),
        main_class=main_class,
        version=version,
    )

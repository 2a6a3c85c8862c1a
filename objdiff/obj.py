"""Object file model: sections, symbols, relocations, instructions and diff results."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from objdiff.util import signed_hex


class ObjSectionKind(enum.Enum):
    CODE = "code"
    DATA = "data"
    BSS = "bss"


class ObjSymbolFlags(enum.Flag):
    GLOBAL = enum.auto()
    LOCAL = enum.auto()
    WEAK = enum.auto()
    COMMON = enum.auto()
    HIDDEN = enum.auto()


class ArgValueKind(enum.Enum):
    SIGNED = "signed"
    UNSIGNED = "unsigned"
    OPAQUE = "opaque"


@dataclass(frozen=True)
class ObjInsArgValue:
    """An operand value: a 16-bit signed or unsigned immediate, or opaque text."""

    kind: ArgValueKind
    value: Union[int, str]

    def __post_init__(self) -> None:
        if self.kind is ArgValueKind.OPAQUE:
            if not isinstance(self.value, str):
                raise TypeError("opaque argument value must be a string")
        elif not isinstance(self.value, int):
            raise TypeError("numeric argument value must be an integer")
        elif self.kind is ArgValueKind.SIGNED and not -0x8000 <= self.value <= 0x7FFF:
            raise ValueError(f"signed value {self.value} out of 16-bit range")
        elif self.kind is ArgValueKind.UNSIGNED and not 0 <= self.value <= 0xFFFF:
            raise ValueError(f"unsigned value {self.value} out of 16-bit range")

    def loose_eq(self, other: ObjInsArgValue) -> bool:
        """Compare values, treating signed and unsigned immediates by their bit pattern."""
        kinds = (self.kind, other.kind)
        if kinds == (ArgValueKind.SIGNED, ArgValueKind.UNSIGNED):
            return (self.value & 0xFFFF) == other.value
        if kinds == (ArgValueKind.UNSIGNED, ArgValueKind.SIGNED):
            return (other.value & 0xFFFF) == self.value
        return self.kind is other.kind and self.value == other.value

    def __str__(self) -> str:
        if self.kind is ArgValueKind.SIGNED:
            return signed_hex(self.value)
        if self.kind is ArgValueKind.UNSIGNED:
            return f"{self.value:#x}"
        return str(self.value)


class ObjInsArgKind(enum.Enum):
    ARG = "arg"
    ARG_WITH_BASE = "arg_with_base"
    RELOC = "reloc"
    RELOC_WITH_BASE = "reloc_with_base"
    BRANCH_OFFSET = "branch_offset"


@dataclass(frozen=True)
class ObjInsArg:
    """An instruction operand.

    ``value`` is an :class:`ObjInsArgValue` for plain arguments, an integer
    offset for branches, and ``None`` for relocations.
    """

    kind: ObjInsArgKind
    value: Union[ObjInsArgValue, int, None] = None

    def __post_init__(self) -> None:
        if self.kind in (ObjInsArgKind.ARG, ObjInsArgKind.ARG_WITH_BASE):
            if not isinstance(self.value, ObjInsArgValue):
                raise TypeError(f"{self.kind.value} needs an ObjInsArgValue")
        elif self.kind is ObjInsArgKind.BRANCH_OFFSET:
            if not isinstance(self.value, int):
                raise TypeError("branch offset needs an integer")
        elif self.value is not None:
            raise TypeError(f"{self.kind.value} carries no value")

    def loose_eq(self, other: ObjInsArg) -> bool:
        """Compare operands of the same kind, values compared loosely."""
        if self.kind is not other.kind:
            return False
        if self.kind in (ObjInsArgKind.ARG, ObjInsArgKind.ARG_WITH_BASE):
            return self.value.loose_eq(other.value)
        return self.value == other.value


@dataclass
class ObjInsArgDiff:
    """Incrementing index used to colour differing arguments."""

    idx: int


@dataclass
class ObjInsBranchFrom:
    ins_idx: list[int]
    branch_idx: int


@dataclass
class ObjInsBranchTo:
    ins_idx: int
    branch_idx: int


class ObjInsDiffKind(enum.Enum):
    NONE = "none"
    OP_MISMATCH = "op_mismatch"
    ARG_MISMATCH = "arg_mismatch"
    REPLACE = "replace"
    DELETE = "delete"
    INSERT = "insert"


@dataclass
class ObjIns:
    address: int
    code: int
    op: int
    mnemonic: str
    args: list[ObjInsArg] = field(default_factory=list)
    reloc: Optional[ObjReloc] = None
    branch_dest: Optional[int] = None
    line: Optional[int] = None
    orig: Optional[str] = None


@dataclass
class ObjInsDiff:
    ins: Optional[ObjIns] = None
    kind: ObjInsDiffKind = ObjInsDiffKind.NONE
    branch_from: Optional[ObjInsBranchFrom] = None
    branch_to: Optional[ObjInsBranchTo] = None
    arg_diff: list[Optional[ObjInsArgDiff]] = field(default_factory=list)


class ObjDataDiffKind(enum.Enum):
    NONE = "none"
    REPLACE = "replace"
    DELETE = "delete"
    INSERT = "insert"


@dataclass
class ObjDataDiff:
    data: bytes = b""
    kind: ObjDataDiffKind = ObjDataDiffKind.NONE
    len: int = 0
    symbol: str = ""


@dataclass
class ObjSymbol:
    name: str
    demangled_name: Optional[str] = None
    address: int = 0
    section_address: int = 0
    size: int = 0
    size_known: bool = False
    flags: ObjSymbolFlags = ObjSymbolFlags(0)
    addend: int = 0
    diff_symbol: Optional[str] = None
    instructions: list[ObjInsDiff] = field(default_factory=list)
    match_percent: Optional[float] = None


@dataclass
class ObjSection:
    name: str
    kind: ObjSectionKind
    address: int = 0
    size: int = 0
    data: bytes = b""
    index: int = 0
    symbols: list[ObjSymbol] = field(default_factory=list)
    relocations: list[ObjReloc] = field(default_factory=list)
    data_diff: list[ObjDataDiff] = field(default_factory=list)
    match_percent: float = 0.0


class ObjArchitecture(enum.Enum):
    POWERPC = "powerpc"
    MIPS = "mips"


class ObjRelocKind(enum.Enum):
    ABSOLUTE = "absolute"
    PPC_ADDR16_HI = "ppc_addr16_hi"
    PPC_ADDR16_HA = "ppc_addr16_ha"
    PPC_ADDR16_LO = "ppc_addr16_lo"
    PPC_REL24 = "ppc_rel24"
    PPC_REL14 = "ppc_rel14"
    PPC_EMB_SDA21 = "ppc_emb_sda21"
    MIPS_26 = "mips_26"
    MIPS_HI16 = "mips_hi16"
    MIPS_LO16 = "mips_lo16"
    MIPS_GOT16 = "mips_got16"
    MIPS_CALL16 = "mips_call16"
    MIPS_GPREL16 = "mips_gprel16"
    MIPS_GPREL32 = "mips_gprel32"


@dataclass
class ObjReloc:
    kind: ObjRelocKind
    address: int
    target: ObjSymbol
    target_section: Optional[str] = None


@dataclass
class ObjInfo:
    architecture: ObjArchitecture
    path: Path
    timestamp: float
    sections: list[ObjSection] = field(default_factory=list)
    common: list[ObjSymbol] = field(default_factory=list)
    line_info: Optional[dict[int, int]] = None


class DiffAlg(enum.Enum):
    """Sequence diff algorithm; ``PATIENCE`` is the default."""

    PATIENCE = "Patience"
    LEVENSHTEIN = "Levenshtein"
    MYERS = "Myers"
    LCS = "Lcs"


@dataclass
class DiffObjConfig:
    code_alg: DiffAlg = DiffAlg.PATIENCE
    data_alg: DiffAlg = DiffAlg.PATIENCE
    relax_reloc_diffs: bool = False


@dataclass
class ProcessCodeResult:
    """Disassembled code: one opcode id per instruction, plus the instructions."""

    ops: list[int] = field(default_factory=list)
    insts: list[ObjIns] = field(default_factory=list)
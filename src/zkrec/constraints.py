import hashlib
import itertools
from dataclasses import dataclass
from typing import Callable, Iterable, TypeVar

import dill
from pymcl import r as ρ

from .errors import AssignmentMissing, ConstraintUnsatisfied, ShapeMismatch, SystemFrozen
from .types import Args, Fld, Gal, Gate, Value, Var


Getw = Callable[[Gal], Fld]
W_Fn = Callable[[Getw], Fld]
ANY = TypeVar("ANY", Gal, list, tuple)


@dataclass(frozen=True)
class Shape:
    # The witness-free part of a frozen constraint system, this is all that setup needs, and all that a
    # proving key has to agree with.

    wire_count: int  # dimension of the assignment vector
    stmts: dict[int, str]  # the public entries, keys are their indices and values are their names
    gates: list[Gate]  # the rank-1 constraints, including the public input binding gates

    @property
    def gate_count(self) -> int:
        return len(self.gates)

    @property
    def stmt_count(self) -> int:
        return len(self.stmts)

    def counts(self) -> tuple[int, int, int]:
        return self.wire_count, self.gate_count, self.stmt_count

    def names(self) -> list[str]:
        # names of the public inputs in allocation order, without the constant ONE
        return [name for m, name in self.stmts.items() if m != 0]

    def layout(self) -> list[tuple]:
        # the gates with the owner tags stripped, comparable across systems
        return [tuple(sorted(g.data.items())) if isinstance(g, Var) else g for gate in self.gates for g in gate]

    def same(self, other: "Shape") -> bool:
        return self.wire_count == other.wire_count and self.stmts == other.stmts and self.layout() == other.layout()

    def digest(self) -> bytes:
        # identifies the relation, the public entries and the gates without their messages
        gates = [tuple(sorted(g.data.items())) if isinstance(g, Var) else g % ρ for *abc, _ in self.gates for g in abc]
        return hashlib.sha256(repr((self.wire_count, sorted(self.stmts.items()), gates)).encode()).digest()

    def dumps(self) -> bytes:
        return dill.dumps((self.wire_count, self.stmts, self.gates))

    @staticmethod
    def loads(data: bytes) -> "Shape":
        wire_count, stmts, gates = dill.loads(data)
        return Shape(wire_count, stmts, gates)


class ConstraintSystem:
    # The ConstraintSystem class records the wires and the rank-1 constraints of a relation. It runs in one
    # of two modes: in shape mode (witness_mode=False) only the structure is recorded and every value is
    # Unknown, in witness mode every wire also carries its concrete value. Both modes go through exactly
    # the same methods, so a circuit can never build a different structure for setup and for proving.

    _tags = itertools.count()

    wire_count: int
    values: list[Value]  # the assignment vector, None for every entry in shape mode
    stmts: dict[int, str]
    gates: list[Gate]
    frozen: bool
    relation_count: int  # number of gates emitted by the circuit itself, set by freeze

    def __init__(self, witness_mode: bool = False) -> None:
        self.tag = next(self._tags)
        self.witness_mode = witness_mode
        self.wire_count = 0
        self.values = []
        self.stmts = {}
        self.gates = []
        self.frozen = False
        self.relation_count = 0
        # add a constant 1 to the assignment vector
        [self.one] = self.MKWIRE(lambda getw: 0x01, "ONE").data

    # ownership and evaluation

    def _own(self, *gals: Gal) -> None:
        if self.frozen:
            raise SystemFrozen("constraint system is frozen")
        for xGal in gals:
            if isinstance(xGal, Fld):
                continue
            if xGal.tag != self.tag or any(m >= self.wire_count for m in xGal.data):
                raise ShapeMismatch("variable is not owned by this constraint system")

    def _var(self, data: dict[int, Fld]) -> Var:
        return Var(data, self.tag)

    def getw(self, xGal: Gal) -> Fld:
        # <w, x> = Σₘ₌₀ᴹ⁻¹ wₘxₘ
        if isinstance(xGal, Fld):
            return xGal % ρ
        total = 0x00
        for m, a in xGal.data.items():
            w = self.values[m]
            if w is None:
                raise AssignmentMissing("wire {} has no value".format(m))
            total += w * a
        return total % ρ

    # wires and gates

    def MKWIRE(self, func: W_Fn, name: str | None = None) -> Var:
        # Add a new entry to the assignment vector. In witness mode its value is computed right away by
        # func, which receives getw to read the values of earlier entries, in shape mode func is never
        # called. If name is given, the entry is public.
        if self.frozen:
            raise SystemFrozen("constraint system is frozen")
        i = self.wire_count
        self.values.append(func(self.getw) % ρ if self.witness_mode else None)
        self.wire_count += 1
        if name is not None:
            self.stmts[i] = name
        return self._var({i: 0x01})

    def ALLOC_PUBLIC(self, name: str, value: Value) -> Var:
        return self.MKWIRE(lambda getw: self._known(name, value), name)

    def ALLOC_PRIVATE(self, name: str, value: Value) -> Var:
        return self.MKWIRE(lambda getw: self._known(name, value))

    def PARAM(self, name: str, args: Args | None, public: bool = False) -> Var:
        # Allocate an entry whose value is args[name], args is None in shape mode.
        value = None if args is None else args.get(name)
        return self.ALLOC_PUBLIC(name, value) if public else self.ALLOC_PRIVATE(name, value)

    @staticmethod
    def _known(name: str, value: Value) -> Fld:
        if value is None:
            raise AssignmentMissing("no value assigned to {}".format(name))
        return value

    def MKGATE(self, xGal: Gal, yGal: Gal, zGal: Gal, *, msg="assertion error") -> None:
        # Add a constraint x * y = z to the system, msg is reported when the constraint is not satisfied.
        self._own(xGal, yGal, zGal)
        if isinstance(xGal, Fld) or isinstance(yGal, Fld):
            zGal = self.SUB(zGal, self.MUL(xGal, yGal))
            if isinstance(zGal, Fld):
                if zGal != 0x00:
                    raise ConstraintUnsatisfied(msg)
                return
            xGal = 0x00
            yGal = 0x00
        self.gates.append((xGal, yGal, zGal, msg))

    ENFORCE = MKGATE

    def freeze(self) -> None:
        # Close the system. One gate x * 0 = 0 is appended for every public entry, which leaves the
        # relation unchanged but gives each public entry its own independent polynomial, so that a proof
        # is bound to the exact values of all its public inputs.
        if self.frozen:
            return
        self.relation_count = len(self.gates)
        for m in self.stmts:
            self.gates.append((self._var({m: 0x01}), 0x00, 0x00, "public input binding"))
        self.frozen = True

    def shape(self) -> Shape:
        return Shape(self.wire_count, dict(self.stmts), list(self.gates))

    def inputs(self) -> list[Fld]:
        # the public input vector, in allocation order, without the constant ONE
        return [self.getw(self._var({m: 0x01})) for m in self.stmts if m != self.one]

    def check(self) -> str | None:
        # Return the message of the first unsatisfied gate, or None if the assignment satisfies them all.
        for xGal, yGal, zGal, msg in self.gates:
            if self.getw(xGal) * self.getw(yGal) % ρ != self.getw(zGal):
                return msg
        return None

    # arithmetic operations on variables

    def ADD(self, xGal: Gal, yGal: Gal) -> Gal:
        return self.SUM([xGal, yGal])

    def SUB(self, xGal: Gal, yGal: Gal) -> Gal:
        return self.SUM([xGal, self.MUL(yGal, ρ - 1)])

    def SUM(self, iLst: Iterable[Gal], rGal: Gal = 0x00) -> Gal:
        iLst = [rGal, *iLst]
        self._own(*iLst)
        data: dict[int, Fld] = {}
        for iGal in iLst:
            for k, v in ([(self.one, iGal)] if isinstance(iGal, Fld) else iGal.data.items()):
                data[k] = data.get(k, 0x00) + v
        rGal = self._var({k: t for k, v in data.items() if (t := v % ρ)})
        return rGal.data.get(self.one, 0x00) if rGal.data.keys() <= {self.one} else rGal

    def MUL(self, xGal: Gal, yGal: Gal, *, msg="multiplication error") -> Gal:
        self._own(xGal, yGal)
        if isinstance(xGal, Fld) and isinstance(yGal, Fld):
            return xGal * yGal % ρ
        if isinstance(xGal, Fld):
            xGal, yGal = yGal, xGal
        if isinstance(yGal, Fld):
            if yGal % ρ == 0x00:
                return 0x00
            return self._var({k: v * yGal % ρ for k, v in xGal.data.items()})
        zGal = self.MKWIRE(lambda getw: getw(xGal) * getw(yGal))
        self.MKGATE(xGal, yGal, zGal, msg=msg)
        return zGal

    def DIV(self, xGal: Gal, yGal: Gal, *, msg="division error") -> Gal:
        # Division in the scalar field, a zero divisor makes the gate z * y = x unsatisfiable unless x = 0.
        self._own(xGal, yGal)
        if isinstance(yGal, Fld):
            if yGal % ρ == 0x00:
                raise ConstraintUnsatisfied(msg)
            return self.MUL(xGal, pow(yGal, -1, ρ))
        if isinstance(xGal, Fld) and xGal % ρ == 0x00:
            return 0x00
        zGal = self.MKWIRE(lambda getw: getw(xGal) * pow(getw(yGal), -1, ρ) if getw(yGal) else 0x00)
        self.MKGATE(zGal, yGal, xGal, msg=msg)
        return zGal

    # selection and logical operations

    def IF(self, bBit: Gal, tItm: ANY, fItm: ANY) -> ANY:
        # Conditional expression select(b, t, f) = b * (t - f) + f, b has to be a boolean value, t and f are
        # scalars or lists or tuples of the same shape.
        if isinstance(bBit, Fld) and bBit in (0x00, 0x01):
            return tItm if bBit else fItm
        if isinstance(tItm, list | tuple):
            return type(tItm)(self.IF(bBit, t, f) for t, f in zip(tItm, fItm, strict=True))
        return self.ADD(self.MUL(bBit, self.SUB(tItm, fItm)), fItm)

    def NOT(self, xBit: Gal) -> Gal:
        return self.SUB(0x01, xBit)

    def AND(self, xBit: Gal, yBit: Gal) -> Gal:
        return self.MUL(xBit, yBit)

    # assertions

    def ASSERT_EQZ(self, xGal: Gal, *, msg="EQZ assertion failed") -> None:
        self.MKGATE(0x00, 0x00, xGal, msg=msg)

    def ASSERT_IS_BOOL(self, xGal: Gal, *, msg="IS_BOOL assertion failed") -> None:
        self.MKGATE(xGal, xGal, xGal, msg=msg)

    def CONNECT(self, xGal: Gal, yGal: Gal, *, msg="CONNECT assertion failed") -> None:
        # Equality constraint between two variables.
        self.ASSERT_EQZ(self.SUB(xGal, yGal), msg=msg)

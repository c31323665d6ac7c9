from pymcl import r as ρ

from .constraints import ConstraintSystem
from .errors import ConstraintUnsatisfied
from .types import Args, Fld


class Circuit:
    # A circuit is a relation described by the wires it allocates and the gates it emits. synthesize is its
    # only entry point: setup calls it with witness=None (shape mode) and the prover with a full witness
    # (witness mode), so both always see the same structure.

    name = "circuit"

    def synthesize(self, cs: ConstraintSystem, witness: Args | None) -> None:
        raise NotImplementedError


def synthesize(circuit: Circuit, witness: Args | None = None) -> ConstraintSystem:
    cs = ConstraintSystem(witness_mode=witness is not None)
    circuit.synthesize(cs, witness)
    cs.freeze()
    return cs


def mock_prove(circuit: Circuit, witness: Args) -> ConstraintSystem:
    # Check a witness against the relation without any key or group operation.
    cs = synthesize(circuit, witness)
    msg = cs.check()
    if msg is not None:
        raise ConstraintUnsatisfied(msg)
    return cs


class Factorization(Circuit):
    """Knowledge of p and q such that p * q = N.

    N is public, p and q stay private. There is no range check on p and q: any pair of field elements
    whose product is N modulo r is accepted, including 1 * N and pairs whose integer product wraps
    around the modulus. The relation proves a factorization in the field, not over the integers.
    """

    name = "factorization"

    def synthesize(self, cs: ConstraintSystem, witness: Args | None) -> None:
        n = cs.PARAM("N", witness, public=True)
        p = cs.PARAM("p", witness)
        q = cs.PARAM("q", witness)
        cs.ENFORCE(p, q, n, msg="p * q = N")

    @staticmethod
    def assign(p: Fld, q: Fld, n: Fld | None = None) -> Args:
        return {"N": p * q % ρ if n is None else n, "p": p, "q": q}

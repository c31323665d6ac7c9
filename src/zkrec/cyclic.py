"""One fixed circuit shape that takes a proof of its own shape as input.

Every step proves z = transition(z_in), where z_in is either the public z of the previous step's proof
(flag = 1) or the constant BASE (flag = 0, base case). The previous proof enters as public limbs and its
public inputs as private wires. The carried value is tied to those private wires by a CONNECT constraint,
but nothing in the circuit ties the private wires to the limbs, so the constraint only keeps an honest
prover consistent. RecursionChain.audit is what binds a step to the proof it continues from: it checks
that each step carries the limbs of the proof before it and continues from that proof's public z.

The validity of the previous proof is handled the same way as by the CHECKED verifier gadget: checked
natively by the prover, bound to flag by a constraint, and only guaranteed by the native re-check in
RecursionChain.audit. A chain has to be audited before its last proof is trusted. A chain in
PLACEHOLDER mode does not check the previous proof at all.
"""

import enum
import random

from pymcl import g1, g2, r as ρ

from .circuits import Circuit, synthesize
from .constraints import ConstraintSystem
from .errors import ShapeMismatch, ZkError
from .gadget import LIMB_COUNT, Mode, alloc_inputs, alloc_proof, check, limbs
from .groth16 import Key, Proof, Result, VKey, derive, prove, verify
from .types import Args, Fld, Gal


STEP_INPUTS = 2 + LIMB_COUNT  # z, flag and the limbs of the previous proof

DUMMY = Proof(A1=g1, B2=g2, C1=g1)  # stands in for the previous proof in the base case, never verifies


class State(enum.Enum):
    BASE_CASE = "base case"
    RECURSIVE_STEP = "recursive step"
    DONE = "done"


class CyclicStep(Circuit):
    name = "cyclic"

    BASE = 0x00

    def __init__(self, inner_vk: VKey | None = None, mode: Mode = Mode.CHECKED) -> None:
        # inner_vk is the verifying key of this very shape, it is None while the shape is being computed
        self.inner_vk = inner_vk
        self.mode = mode

    def transition(self, cs: ConstraintSystem, z: Gal) -> Gal:
        return cs.ADD(z, 0x01)

    def advance(self, z: Fld) -> Fld:
        # native counterpart of transition
        return (z + 0x01) % ρ

    def synthesize(self, cs: ConstraintSystem, witness: Args | None) -> None:
        get = (lambda key: None) if witness is None else witness.get
        proof = get("proof")
        inputs = get("inputs")
        z = cs.ALLOC_PUBLIC("z", get("z"))
        flag = cs.ALLOC_PUBLIC("flag", get("flag"))
        alloc_proof(cs, proof)
        inner_z, *_ = alloc_inputs(cs, inputs, STEP_INPUTS, public=False, prefix="inner")
        z_in = cs.ALLOC_PRIVATE("z_in", get("z_in"))
        cs.ASSERT_IS_BOOL(flag, msg="flag is boolean")
        cs.CONNECT(z_in, cs.IF(flag, inner_z, self.BASE), msg="carried value")
        if self.mode is Mode.CHECKED:
            valid = cs.MKWIRE(lambda getw: check(proof, inputs, self.inner_vk))
            cs.ASSERT_IS_BOOL(valid, msg="valid is boolean")
            cs.MKGATE(flag, cs.NOT(valid), 0x00, msg="previous proof verifies")
        cs.CONNECT(z, self.transition(cs, z_in), msg="transition")

    def assign(self, z_in: Fld, proof: Proof | None = None, inputs: list[Fld] | None = None) -> Args:
        # witness of the base case when proof is None, of a recursive step otherwise
        flag = 0x00 if proof is None else 0x01
        return {
            "z": self.advance(z_in),
            "flag": flag,
            "proof": DUMMY if proof is None else proof,
            "inputs": [0x00] * STEP_INPUTS if inputs is None else list(inputs),
            "z_in": z_in,
        }

    @staticmethod
    def inputs(witness: Args) -> list[Fld]:
        return [witness["z"], witness["flag"], *limbs(witness["proof"])]

    @staticmethod
    def names() -> list[str]:
        return ["z", "flag", *("proof[{}]".format(i) for i in range(LIMB_COUNT))]


def fixed_point(mode: Mode, rng: random.Random, factory: type[CyclicStep] = CyclicStep) -> tuple[CyclicStep, Key]:
    # The key of a cyclic circuit depends on its shape and the circuit needs the key, so the shape is
    # computed first without any key, the key is derived from it, and the circuit rebuilt with the key has
    # to come out with the same shape.
    draft = synthesize(factory(None, mode)).shape()
    key = derive(draft, rng)
    step = factory(key.get_vk(), mode)
    final = synthesize(step).shape()
    if not final.same(draft) or key.get_vk().input_count != STEP_INPUTS:
        raise ShapeMismatch("the cyclic circuit changes shape when given its own key")
    return step, key


class RecursionChain:
    # Drives a cyclic circuit through BASE_CASE -> RECURSIVE_STEP -> ... -> DONE. Every proof is kept with
    # its public inputs so the whole chain can be audited afterwards.

    def __init__(self, step: CyclicStep, key: Key, rng: random.Random) -> None:
        self.circuit = step
        self.pk = key.get_pk()
        self.vk = key.get_vk()
        self.rng = rng
        self.state = State.BASE_CASE
        self.proofs: list[tuple[Proof, list[Fld]]] = []

    def _expect(self, state: State) -> None:
        if self.state is not state:
            raise ZkError("chain is in state {}, expected {}".format(self.state.value, state.value))

    def _prove(self, witness: Args) -> Proof:
        proof = prove(self.circuit, witness, self.pk, self.rng)
        self.proofs.append((proof, self.circuit.inputs(witness)))
        return proof

    def start(self) -> Proof:
        self._expect(State.BASE_CASE)
        proof = self._prove(self.circuit.assign(self.circuit.BASE))
        self.state = State.RECURSIVE_STEP
        return proof

    def step(self) -> Proof:
        self._expect(State.RECURSIVE_STEP)
        proof, inputs = self.proofs[-1]
        return self._prove(self.circuit.assign(inputs[0], proof, inputs))

    @property
    def head(self) -> tuple[Proof, list[Fld]]:
        return self.proofs[-1]

    def finish(self) -> Result:
        # the final plain check of the last proof
        self._expect(State.RECURSIVE_STEP)
        self.state = State.DONE
        proof, inputs = self.head
        return verify(proof, inputs, self.vk, self.circuit.names())

    def audit(self) -> bool:
        # Re-check every link natively: each proof verifies, each step commits to the limbs of the proof
        # before it and continues from its value.
        for i, (proof, inputs) in enumerate(self.proofs):
            if not verify(proof, inputs, self.vk):
                return False
            z, flag, *proof_limbs = inputs
            if i == 0:
                if flag != 0x00 or proof_limbs != limbs(DUMMY):
                    return False
                continue
            prev, prev_inputs = self.proofs[i - 1]
            if flag != 0x01 or proof_limbs != limbs(prev) or z != self.circuit.advance(prev_inputs[0]):
                return False
        return True

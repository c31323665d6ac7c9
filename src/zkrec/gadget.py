"""A circuit whose relation is "this Groth16 proof verifies", for building proofs about proofs.

The inner proof enters the circuit as public limbs, so the outer proof commits to exactly which inner
proof and which inner public inputs it talks about. What the circuit then asserts depends on the mode:

PLACEHOLDER
    Only the trivial constraint claim == 1 is emitted. The outer proof says NOTHING about the validity of
    the inner proof, an outer proof over garbage limbs verifies just as well. It exists to test the wiring
    of a recursion pipeline and must never be presented as recursion.

CHECKED
    The prover runs the native verifier on the inner proof while assigning the witness and the circuit
    enforces valid == claim, so an honest prover cannot produce an outer proof over an inner proof that
    fails (proving raises ConstraintUnsatisfied). The pairing equation itself is not expressed as
    constraints, the BLS12-381 pairing would need non-native arithmetic over its own scalar field, so the
    cryptographic check is deferred: verify_deferred checks the outer proof and then the inner proof it
    commits to. This gives one level of aggregation, not succinct recursion.
"""

import enum

from .circuits import Circuit
from .constraints import ConstraintSystem
from .errors import MalformedProof, ShapeMismatch
from .groth16 import Proof, Result, VKey, verify
from .types import Args, Fld, Value


class Mode(enum.Enum):
    PLACEHOLDER = "placeholder"
    CHECKED = "checked"


# A serialized proof is cut into 31-byte limbs, each of which is always smaller than the field order.

LIMB = 31
LIMB_COUNT = -(-Proof.SIZE // LIMB)


def limbs(proof: Proof) -> list[Fld]:
    data = proof.tobytes()
    return [int.from_bytes(data[i : i + LIMB], "big") for i in range(0, len(data), LIMB)]


def unlimbs(values: list[Fld]) -> Proof:
    if len(values) != LIMB_COUNT:
        raise MalformedProof("expected {} limbs, got {}".format(LIMB_COUNT, len(values)))
    sizes = [min(LIMB, Proof.SIZE - i) for i in range(0, Proof.SIZE, LIMB)]
    try:
        data = b"".join(v.to_bytes(n, "big") for v, n in zip(values, sizes))
    except OverflowError as e:
        raise MalformedProof("limb out of range") from e
    return Proof.frombytes(data)


def check(proof: Proof | None, inputs: list[Fld] | None, vk: VKey | None) -> Fld:
    # 1 if the proof verifies under vk, 0 otherwise, never raises on a malformed proof
    if vk is None:
        raise ShapeMismatch("the inner verifying key is required to check a proof")
    if proof is None or inputs is None:
        return 0x00
    try:
        return 0x01 if verify(proof, inputs, vk) else 0x00
    except MalformedProof:
        return 0x00


def alloc_proof(cs: ConstraintSystem, proof: Proof | None, public: bool = True, prefix: str = "proof"):
    values: list[Value] = [None] * LIMB_COUNT if proof is None else limbs(proof)
    alloc = cs.ALLOC_PUBLIC if public else cs.ALLOC_PRIVATE
    return [alloc("{}[{}]".format(prefix, i), v) for i, v in enumerate(values)]


def alloc_inputs(cs: ConstraintSystem, inputs: list[Fld] | None, count: int, public: bool = True, prefix: str = "input"):
    if inputs is not None and len(inputs) != count:
        raise ShapeMismatch("expected {} inner inputs, got {}".format(count, len(inputs)))
    values: list[Value] = [None] * count if inputs is None else list(inputs)
    alloc = cs.ALLOC_PUBLIC if public else cs.ALLOC_PRIVATE
    return [alloc("{}[{}]".format(prefix, i), v) for i, v in enumerate(values)]


class VerifierGadget(Circuit):
    name = "verifier"

    def __init__(self, inner_vk: VKey, mode: Mode = Mode.PLACEHOLDER) -> None:
        # The inner verifying key is fixed here, it determines how many inner inputs are allocated.
        self.inner_vk = inner_vk
        self.mode = mode

    def synthesize(self, cs: ConstraintSystem, witness: Args | None) -> None:
        proof = None if witness is None else witness.get("proof")
        inputs = None if witness is None else witness.get("inputs")
        if witness is not None and (proof is None or inputs is None):
            # reading the limbs of a missing proof is reported the same way as any missing value
            proof = inputs = None
        alloc_proof(cs, proof)
        alloc_inputs(cs, inputs, self.inner_vk.input_count)
        claim = cs.PARAM("claim", witness, public=True)
        if self.mode is Mode.PLACEHOLDER:
            cs.ENFORCE(claim, 0x01, 0x01, msg="claim equals 1")
            return
        valid = cs.MKWIRE(lambda getw: check(proof, inputs, self.inner_vk))
        cs.ASSERT_IS_BOOL(valid, msg="valid is boolean")
        cs.CONNECT(valid, claim, msg="inner proof verifies")

    @staticmethod
    def assign(proof: Proof, inputs: list[Fld], claim: Fld = 0x01) -> Args:
        return {"proof": proof, "inputs": list(inputs), "claim": claim}

    @staticmethod
    def inputs(proof: Proof, inputs: list[Fld], claim: Fld = 0x01) -> list[Fld]:
        # the public input vector of the outer proof, in allocation order
        return [*limbs(proof), *inputs, claim]

    def names(self) -> list[str]:
        return [
            *("proof[{}]".format(i) for i in range(LIMB_COUNT)),
            *("input[{}]".format(i) for i in range(self.inner_vk.input_count)),
            "claim",
        ]


def split(outer_inputs: list[Fld], inner_count: int) -> tuple[Proof, list[Fld], Fld]:
    if len(outer_inputs) != LIMB_COUNT + inner_count + 1:
        raise MalformedProof("expected {} outer inputs, got {}".format(LIMB_COUNT + inner_count + 1, len(outer_inputs)))
    proof = unlimbs(outer_inputs[:LIMB_COUNT])
    inputs = outer_inputs[LIMB_COUNT : LIMB_COUNT + inner_count]
    return proof, inputs, outer_inputs[-1]


def verify_deferred(outer: Proof, outer_inputs: list[Fld], outer_vk: VKey, inner_vk: VKey) -> Result:
    # Verify an outer proof made with a CHECKED gadget, then the deferred check of the inner proof that
    # the outer proof commits to. Passes only if both pass and the claim is 1.
    result = verify(outer, outer_inputs, outer_vk)
    proof, inputs, claim = split(outer_inputs, inner_vk.input_count)
    inner = verify(proof, inputs, inner_vk)
    return Result(
        passed=result.passed and inner.passed and claim == 0x01,
        values=result.values,
    )


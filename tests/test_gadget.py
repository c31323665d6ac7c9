import random

import pytest

from zkrec.circuits import Factorization, synthesize
from zkrec.errors import ConstraintUnsatisfied, MalformedProof
from zkrec.gadget import LIMB_COUNT, Mode, VerifierGadget, limbs, unlimbs, verify_deferred
from zkrec.groth16 import Proof, prove, setup, verify


@pytest.fixture(scope="module")
def placeholder(vk):
    gadget = VerifierGadget(vk, Mode.PLACEHOLDER)
    return gadget, setup(gadget, random.Random(21))


@pytest.fixture(scope="module")
def checked(vk):
    gadget = VerifierGadget(vk, Mode.CHECKED)
    return gadget, setup(gadget, random.Random(22))


class TestLimbs:
    def test_count(self):
        assert LIMB_COUNT == 7
        assert Proof.SIZE == 192

    def test_limbs_round_trip(self, proof):
        values = limbs(proof)
        assert len(values) == LIMB_COUNT
        assert all(v < 1 << 248 for v in values)
        assert unlimbs(values) == proof

    def test_wrong_limb_count(self, proof):
        with pytest.raises(MalformedProof):
            unlimbs(limbs(proof)[:-1])

    def test_oversized_limb(self, proof):
        values = limbs(proof)
        values[-1] = 1 << 64
        with pytest.raises(MalformedProof):
            unlimbs(values)


class TestPlaceholder:
    """Placeholder mode is NOT sound: its proofs assert nothing about the inner proof."""

    def test_shape(self, placeholder):
        gadget, key = placeholder
        shape = synthesize(gadget).shape()
        assert shape.names() == gadget.names()
        assert key.get_vk().input_count == LIMB_COUNT + 1 + 1

    def test_scenario(self, placeholder, proof, vk, rng):
        # 17 * 23 = 391 proved once, then attested with public input 1
        gadget, key = placeholder
        outer = prove(gadget, gadget.assign(proof, [391]), key.get_pk(), rng)
        assert verify(outer, gadget.inputs(proof, [391]), key.get_vk(), gadget.names())
        assert gadget.inputs(proof, [391])[-1] == 1

    def test_asserts_nothing_about_the_inner_proof(self, placeholder, proof, vk, rng):
        gadget, key = placeholder
        assert not verify(proof, [392], vk)
        outer = prove(gadget, gadget.assign(proof, [392]), key.get_pk(), rng)
        assert verify(outer, gadget.inputs(proof, [392]), key.get_vk())
        # only the deferred native check notices
        assert not verify_deferred(outer, gadget.inputs(proof, [392]), key.get_vk(), vk)

    def test_claim_has_to_be_one(self, placeholder, proof, rng):
        gadget, key = placeholder
        with pytest.raises(ConstraintUnsatisfied):
            prove(gadget, gadget.assign(proof, [391], claim=2), key.get_pk(), rng)

    def test_outer_proof_commits_to_the_inner_proof(self, placeholder, proof, pk, rng):
        gadget, key = placeholder
        outer = prove(gadget, gadget.assign(proof, [391]), key.get_pk(), rng)
        other = prove(Factorization(), Factorization.assign(17, 23), pk, rng)
        assert not verify(outer, gadget.inputs(other, [391]), key.get_vk())


class TestChecked:
    def test_modes_have_different_shapes(self, checked, placeholder):
        assert not synthesize(checked[0]).shape().same(synthesize(placeholder[0]).shape())

    def test_valid_inner_proof(self, checked, proof, vk, rng):
        gadget, key = checked
        outer = prove(gadget, gadget.assign(proof, [391]), key.get_pk(), rng)
        outer_inputs = gadget.inputs(proof, [391])
        assert verify(outer, outer_inputs, key.get_vk())
        assert verify_deferred(outer, outer_inputs, key.get_vk(), vk)

    def test_invalid_inner_proof_cannot_be_attested(self, checked, proof, rng):
        gadget, key = checked
        with pytest.raises(ConstraintUnsatisfied, match="inner proof verifies"):
            prove(gadget, gadget.assign(proof, [392]), key.get_pk(), rng)

    def test_forged_claim_zero(self, checked, proof, vk, rng):
        # claiming 0 over an invalid inner proof is provable but never passes the deferred check
        gadget, key = checked
        outer = prove(gadget, gadget.assign(proof, [392], claim=0), key.get_pk(), rng)
        outer_inputs = gadget.inputs(proof, [392], claim=0)
        assert verify(outer, outer_inputs, key.get_vk())
        assert not verify_deferred(outer, outer_inputs, key.get_vk(), vk)

    def test_deferred_check_of_a_tampered_outer_proof(self, checked, proof, vk, rng):
        gadget, key = checked
        outer = prove(gadget, gadget.assign(proof, [391]), key.get_pk(), rng)
        swapped = Proof(A1=outer.C1, B2=outer.B2, C1=outer.A1)
        assert not verify_deferred(swapped, gadget.inputs(proof, [391]), key.get_vk(), vk)

    def test_deferred_check_of_malformed_inputs(self, checked, proof, vk):
        gadget, key = checked
        outer = Proof.frombytes(proof.tobytes())
        with pytest.raises(MalformedProof):
            verify_deferred(outer, gadget.inputs(proof, [391])[1:], key.get_vk(), vk)

import pytest
from pymcl import r as ρ

from zkrec.circuits import Factorization, synthesize
from zkrec.constraints import ConstraintSystem, Shape
from zkrec.errors import AssignmentMissing, ConstraintUnsatisfied, ShapeMismatch, SystemFrozen
from zkrec.types import Var


class TestAllocation:
    def test_one_is_the_first_public_wire(self):
        cs = ConstraintSystem()
        assert cs.one == 0
        assert cs.stmts == {0: "ONE"}

    def test_tags_follow_allocation(self):
        cs = ConstraintSystem(witness_mode=True)
        n = cs.ALLOC_PUBLIC("N", 391)
        p = cs.ALLOC_PRIVATE("p", 17)
        assert n.data == {1: 1}
        assert p.data == {2: 1}
        assert cs.stmts == {0: "ONE", 1: "N"}
        assert cs.inputs() == [391]

    def test_shape_mode_discards_values(self):
        cs = ConstraintSystem()
        cs.ALLOC_PUBLIC("N", 391)
        cs.ALLOC_PRIVATE("p", None)
        assert cs.values == [None, None, None]

    def test_witness_mode_requires_values(self):
        cs = ConstraintSystem(witness_mode=True)
        with pytest.raises(AssignmentMissing):
            cs.ALLOC_PRIVATE("p", None)

    def test_param_reads_the_witness(self):
        cs = ConstraintSystem(witness_mode=True)
        x = cs.PARAM("x", {"x": ρ + 5})
        assert cs.getw(x) == 5
        with pytest.raises(AssignmentMissing):
            cs.PARAM("y", {"x": 1})


class TestLinearCombinations:
    def test_coefficients_are_summed(self):
        cs = ConstraintSystem(witness_mode=True)
        x = cs.ALLOC_PRIVATE("x", 3)
        s = cs.SUM([x, x, cs.MUL(x, 5)])
        assert s.data == {1: 7}
        assert cs.getw(s) == 21

    def test_cancelling_terms_give_a_constant(self):
        cs = ConstraintSystem(witness_mode=True)
        x = cs.ALLOC_PRIVATE("x", 3)
        assert cs.SUB(cs.ADD(x, 4), x) == 4

    def test_mul_of_two_variables_adds_a_gate(self):
        cs = ConstraintSystem(witness_mode=True)
        x = cs.ALLOC_PRIVATE("x", 3)
        y = cs.ALLOC_PRIVATE("y", 4)
        z = cs.MUL(x, y)
        assert cs.getw(z) == 12
        assert len(cs.gates) == 1

    def test_div(self):
        cs = ConstraintSystem(witness_mode=True)
        x = cs.ALLOC_PRIVATE("x", 391)
        y = cs.ALLOC_PRIVATE("y", 17)
        assert cs.getw(cs.DIV(x, y)) == 23
        assert cs.getw(cs.DIV(x, 23)) == 17
        assert cs.check() is None

    def test_div_by_zero(self):
        cs = ConstraintSystem(witness_mode=True)
        x = cs.ALLOC_PRIVATE("x", 5)
        with pytest.raises(ConstraintUnsatisfied):
            cs.DIV(x, 0)
        cs.DIV(x, cs.ALLOC_PRIVATE("y", 0), msg="y is not zero")
        assert cs.check() == "y is not zero"

    @pytest.mark.parametrize("a, b", [(0, 0), (0, 1), (1, 0), (1, 1)])
    def test_logic(self, a, b):
        cs = ConstraintSystem(witness_mode=True)
        x = cs.ALLOC_PRIVATE("x", a)
        y = cs.ALLOC_PRIVATE("y", b)
        assert cs.getw(cs.AND(x, y)) == a & b
        assert cs.getw(cs.NOT(x)) == 1 - a
        assert cs.getw(cs.AND(x, 1)) == a

    @pytest.mark.parametrize("b, expected", [(0, 8), (1, 5)])
    def test_if_selects(self, b, expected):
        cs = ConstraintSystem(witness_mode=True)
        flag = cs.ALLOC_PRIVATE("flag", b)
        x = cs.ALLOC_PRIVATE("x", 5)
        y = cs.ALLOC_PRIVATE("y", 8)
        assert cs.getw(cs.IF(flag, x, y)) == expected
        assert cs.check() is None


class TestGates:
    def test_foreign_variable_is_rejected(self):
        cs = ConstraintSystem()
        other = ConstraintSystem()
        x = other.ALLOC_PRIVATE("x", None)
        with pytest.raises(ShapeMismatch):
            cs.ENFORCE(x, x, x)

    def test_unknown_wire_is_rejected(self):
        cs = ConstraintSystem()
        with pytest.raises(ShapeMismatch):
            cs.ENFORCE(Var({5: 1}, cs.tag), 1, 1)

    def test_frozen_system_rejects_changes(self):
        cs = ConstraintSystem()
        x = cs.ALLOC_PRIVATE("x", None)
        cs.freeze()
        with pytest.raises(SystemFrozen):
            cs.ALLOC_PRIVATE("y", None)
        with pytest.raises(SystemFrozen):
            cs.ENFORCE(x, x, x)

    def test_freeze_binds_public_inputs(self):
        cs = synthesize(Factorization())
        assert cs.relation_count == 1
        assert len(cs.gates) == 1 + len(cs.stmts)

    def test_false_constant_gate(self):
        cs = ConstraintSystem()
        with pytest.raises(ConstraintUnsatisfied):
            cs.ENFORCE(2, 3, 7, msg="2 * 3 = 7")

    def test_check_reports_the_failing_gate(self):
        cs = ConstraintSystem(witness_mode=True)
        x = cs.ALLOC_PRIVATE("x", 2)
        cs.CONNECT(x, 3, msg="x is 3")
        assert cs.check() == "x is 3"

    def test_bool_assertion(self):
        cs = ConstraintSystem(witness_mode=True)
        cs.ASSERT_IS_BOOL(cs.ALLOC_PRIVATE("b", 2), msg="b is boolean")
        assert cs.check() == "b is boolean"


class TestShape:
    def test_modes_agree(self):
        empty = synthesize(Factorization()).shape()
        full = synthesize(Factorization(), Factorization.assign(17, 23)).shape()
        assert empty.same(full)
        assert empty.counts() == (4, 3, 2)
        assert empty.names() == ["N"]

    def test_dumps_loads(self):
        shape = synthesize(Factorization()).shape()
        assert Shape.loads(shape.dumps()).same(shape)

    def test_digest_ignores_messages_and_tags(self):
        shape = synthesize(Factorization()).shape()
        again = synthesize(Factorization(), Factorization.assign(17, 23)).shape()
        assert shape.digest() == again.digest()
        relabeled = Shape(shape.wire_count, shape.stmts, [(*gate[:3], "other") for gate in shape.gates])
        assert relabeled.digest() == shape.digest()

    def test_digest_tells_relations_apart(self):
        cs = ConstraintSystem()
        n = cs.ALLOC_PUBLIC("N", None)
        p = cs.ALLOC_PRIVATE("p", None)
        cs.ALLOC_PRIVATE("q", None)
        cs.ENFORCE(p, p, n)
        cs.freeze()
        shape = synthesize(Factorization()).shape()
        assert cs.shape().counts() == shape.counts()
        assert cs.shape().digest() != shape.digest()

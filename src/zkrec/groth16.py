import io
import multiprocessing
import random
from dataclasses import dataclass
from typing import TypeVar, Iterable, BinaryIO

from pymcl import Fr, G1, G2, pairing, g1, g2, r as ρ

from . import fft
from .circuits import Circuit, synthesize
from .constraints import Shape
from .errors import ConstraintUnsatisfied, MalformedProof, ShapeEmpty, ShapeMismatch
from .types import Args, Fld


Gn = TypeVar("Gn", G1, G2)
Fv = Fr | Fld


# scalar multiplication and dot product optimized for parallel execution


THREADS = None  # None uses every core


def worker(Group: type[Gn], p: str, z: str) -> str:
    return str(Group(p) * Fr(z))


def scalar_mult_parallel(P: Gn, Zs: Iterable[Fv]) -> list[Gn]:
    Group = type(P)
    with multiprocessing.Pool(THREADS) as pool:
        return [Group(q) for q in pool.starmap(worker, ((Group, str(P), str(Z)) for Z in Zs))]


def dot_prod_parallel(O: Gn, Ps: Iterable[Gn], Zs: Iterable[Fv]) -> Gn:
    Group = type(O)
    with multiprocessing.Pool(THREADS) as pool:
        return sum((Group(q) for q in pool.starmap(worker, ((Group, str(P), str(Z)) for P, Z in zip(Ps, Zs, strict=True)))), O)


# binary encoding, every key starts with the counts of the shape it was derived from


L0 = 4
L1 = len(g1.serialize())
L2 = len(g2.serialize())
LD = 32  # digest of the shape, see Shape.digest


def read(file: BinaryIO, n: int) -> bytes:
    data = file.read(n)
    if len(data) != n:
        raise MalformedProof("unexpected end of data")
    return data


def read_count(file: BinaryIO) -> int:
    return int.from_bytes(read(file, L0), "big")


def read_g1(file: BinaryIO) -> G1:
    data = read(file, L1)
    try:
        return G1.deserialize(data)
    except Exception as e:
        raise MalformedProof("invalid G1 element") from e


def read_g2(file: BinaryIO) -> G2:
    data = read(file, L2)
    try:
        return G2.deserialize(data)
    except Exception as e:
        raise MalformedProof("invalid G2 element") from e


def check_end(file: BinaryIO) -> None:
    if file.read(1):
        raise MalformedProof("trailing data")


# Groth16 zk-SNARK keys and proofs


@dataclass
class PKey:
    wire_count: int
    gate_count: int
    stmt_count: int
    digest: bytes
    α1: G1
    β1: G1
    δ1: G1
    β2: G2
    δ2: G2
    v1V: list[G1]
    x1I: list[G1]
    x2I: list[G2]
    y1I: list[G1]

    def counts(self) -> tuple[int, int, int]:
        return self.wire_count, self.gate_count, self.stmt_count

    def dumps(self, file: BinaryIO) -> None:
        for count in self.counts():
            file.write(count.to_bytes(L0, "big"))
        file.write(self.digest)
        file.write(self.α1.serialize())
        file.write(self.β1.serialize())
        file.write(self.δ1.serialize())
        file.write(self.β2.serialize())
        file.write(self.δ2.serialize())
        for V in self.v1V:
            file.write(V.serialize())
        for X in self.x1I:
            file.write(X.serialize())
        for X in self.x2I:
            file.write(X.serialize())
        for Y in self.y1I:
            file.write(Y.serialize())

    @staticmethod
    def loads(file: BinaryIO) -> "PKey":
        M = read_count(file)
        N = read_count(file)
        U = read_count(file)
        D = read(file, LD)
        V = M - U
        I = 1 << (N - 1).bit_length()
        return PKey(
            wire_count=M,
            gate_count=N,
            stmt_count=U,
            digest=D,
            α1=read_g1(file),
            β1=read_g1(file),
            δ1=read_g1(file),
            β2=read_g2(file),
            δ2=read_g2(file),
            v1V=[read_g1(file) for _ in range(V)],
            x1I=[read_g1(file) for _ in range(I)],
            x2I=[read_g2(file) for _ in range(I)],
            y1I=[read_g1(file) for _ in range(I)],
        )


@dataclass
class VKey:
    stmt_count: int
    α1: G1
    β2: G2
    γ2: G2
    δ2: G2
    u1U: list[G1]

    @property
    def input_count(self) -> int:
        return self.stmt_count - 1  # the constant ONE is not an input

    def dumps(self, file: BinaryIO) -> None:
        file.write(self.stmt_count.to_bytes(L0, "big"))
        file.write(self.α1.serialize())
        file.write(self.β2.serialize())
        file.write(self.γ2.serialize())
        file.write(self.δ2.serialize())
        for U in self.u1U:
            file.write(U.serialize())

    @staticmethod
    def loads(file: BinaryIO) -> "VKey":
        U = read_count(file)
        return VKey(
            stmt_count=U,
            α1=read_g1(file),
            β2=read_g2(file),
            γ2=read_g2(file),
            δ2=read_g2(file),
            u1U=[read_g1(file) for _ in range(U)],
        )


@dataclass
class Key:
    wire_count: int
    gate_count: int
    stmt_count: int
    digest: bytes
    α1: G1
    β1: G1
    δ1: G1
    β2: G2
    γ2: G2
    δ2: G2
    u1U: list[G1]
    v1V: list[G1]
    x1I: list[G1]
    x2I: list[G2]
    y1I: list[G1]

    def get_pk(self) -> PKey:
        return PKey(
            wire_count=self.wire_count,
            gate_count=self.gate_count,
            stmt_count=self.stmt_count,
            digest=self.digest,
            α1=self.α1,
            β1=self.β1,
            δ1=self.δ1,
            β2=self.β2,
            δ2=self.δ2,
            v1V=self.v1V,
            x1I=self.x1I,
            x2I=self.x2I,
            y1I=self.y1I,
        )

    def get_vk(self) -> VKey:
        return VKey(
            stmt_count=self.stmt_count,
            α1=self.α1,
            β2=self.β2,
            γ2=self.γ2,
            δ2=self.δ2,
            u1U=self.u1U,
        )

    def dumps(self, file: BinaryIO) -> None:
        # the params artifact: the proving key followed by the verifying key
        self.get_pk().dumps(file)
        self.get_vk().dumps(file)

    @staticmethod
    def loads(file: BinaryIO) -> "Key":
        pk = PKey.loads(file)
        vk = VKey.loads(file)
        if vk.stmt_count != pk.stmt_count:
            raise MalformedProof("proving and verifying keys disagree")
        return Key(
            wire_count=pk.wire_count,
            gate_count=pk.gate_count,
            stmt_count=pk.stmt_count,
            digest=pk.digest,
            α1=pk.α1,
            β1=pk.β1,
            δ1=pk.δ1,
            β2=pk.β2,
            γ2=vk.γ2,
            δ2=pk.δ2,
            u1U=vk.u1U,
            v1V=pk.v1V,
            x1I=pk.x1I,
            x2I=pk.x2I,
            y1I=pk.y1I,
        )


@dataclass(frozen=True)
class Proof:
    A1: G1
    B2: G2
    C1: G1

    SIZE = L1 + L2 + L1

    def dumps(self, file: BinaryIO) -> None:
        file.write(self.A1.serialize())
        file.write(self.B2.serialize())
        file.write(self.C1.serialize())

    @staticmethod
    def loads(file: BinaryIO) -> "Proof":
        return Proof(
            A1=read_g1(file),
            B2=read_g2(file),
            C1=read_g1(file),
        )

    def tobytes(self) -> bytes:
        file = io.BytesIO()
        self.dumps(file)
        return file.getvalue()

    @staticmethod
    def frombytes(data: bytes) -> "Proof":
        if len(data) != Proof.SIZE:
            raise MalformedProof("a proof has {} bytes, got {}".format(Proof.SIZE, len(data)))
        file = io.BytesIO(data)
        proof = Proof.loads(file)
        check_end(file)
        return proof


@dataclass
class Result:
    passed: bool
    values: list[tuple[str, Fld]]

    def __bool__(self) -> bool:
        return self.passed


# Groth16 zk-SNARK setup, prove, and verify methods


def setup(circuit: Circuit, rng: random.Random) -> Key:
    # Synthesize the circuit without a witness and derive a key pair for its shape.
    cs = synthesize(circuit)
    if cs.relation_count == 0:
        raise ShapeEmpty("circuit {} emits no constraints".format(circuit.name))
    return derive(cs.shape(), rng)


def derive(shape: Shape, rng: random.Random) -> Key:
    # The toxic waste α, β, γ, δ, τ is drawn from rng, so the keys are reproducible for a seeded rng and
    # must never be for a real deployment.
    α = rng.randrange(1, ρ)
    β = rng.randrange(1, ρ)
    γ = rng.randrange(1, ρ)
    δ = rng.randrange(1, ρ)
    τ = rng.randrange(1, ρ)
    N = shape.gate_count
    M = shape.wire_count
    skeys = shape.stmts.keys()
    I = 1 << (N - 1).bit_length()
    p = fft.pru(I, ρ)
    # column m of each matrix evaluated at τ, through the inverse DFT of the powers of τ
    XI = fft.ifft(list(fft.pows(τ, I, ρ)), p, ρ)
    AτM = [0x00 for _ in range(M)]
    BτM = [0x00 for _ in range(M)]
    CτM = [0x00 for _ in range(M)]
    for X, (aM, bM, cM, msg) in zip(XI, shape.gates):
        for m, a in [(0, aM)] if isinstance(aM, int) else aM.data.items():
            AτM[m] += X * a
        for m, b in [(0, bM)] if isinstance(bM, int) else bM.data.items():
            BτM[m] += X * b
        for m, c in [(0, cM)] if isinstance(cM, int) else cM.data.items():
            CτM[m] += X * c
    Zτ = pow(τ, I, ρ) - 0x01  # Z(τ) = τᴵ - 1
    Γ = pow(γ, -1, ρ)
    Δ = pow(δ, -1, ρ)
    return Key(
        wire_count=M,
        gate_count=N,
        stmt_count=len(skeys),
        digest=shape.digest(),
        α1=g1 * Fr(str(α)),
        β1=g1 * Fr(str(β)),
        δ1=g1 * Fr(str(δ)),
        β2=g2 * Fr(str(β)),
        γ2=g2 * Fr(str(γ)),
        δ2=g2 * Fr(str(δ)),
        u1U=scalar_mult_parallel(g1, ((β * AτM[m] + α * BτM[m] + CτM[m]) * Γ % ρ for m in skeys)),
        v1V=scalar_mult_parallel(g1, ((β * AτM[m] + α * BτM[m] + CτM[m]) * Δ % ρ for m in range(M) if m not in skeys)),
        x1I=scalar_mult_parallel(g1, fft.pows(τ, I, ρ)),
        x2I=scalar_mult_parallel(g2, fft.pows(τ, I, ρ)),
        y1I=scalar_mult_parallel(g1, (x * Δ * Zτ % ρ for x in fft.pows(τ, I, ρ))),
    )


def prove(circuit: Circuit, witness: Args, pk: PKey, rng: random.Random) -> Proof:
    # The blinding factors r and s are drawn from rng. Two proofs made with the same r and s under the
    # same key leak the witness, so rng must never be replayed for real proofs, a seeded rng is only fit
    # for tests.
    cs = synthesize(circuit, witness)
    shape = cs.shape()
    if shape.counts() != pk.counts() or shape.digest() != pk.digest:
        raise ShapeMismatch("circuit {} does not match the proving key".format(circuit.name))
    msg = cs.check()
    if msg is not None:
        raise ConstraintUnsatisfied(msg)
    r = rng.randrange(1, ρ)
    s = rng.randrange(1, ρ)
    N = shape.gate_count
    M = shape.wire_count
    skeys = shape.stmts.keys()
    I = 1 << (N - 1).bit_length()
    J = 1 << (N - 1).bit_length() + 1
    p = fft.pru(I, ρ)
    q = fft.pru(J, ρ)
    vV = [cs.values[m] for m in range(M) if m not in skeys]
    awN = []
    bwN = []
    cwN = []
    for aM, bM, cM, msg in shape.gates:
        awN.append(cs.getw(aM))
        bwN.append(cs.getw(bM))
        cwN.append(cs.getw(cM))
    # A, B, C in evaluation form on <p>, the quotient is taken on the coset q<p> where Z = -2
    AwI = fft.ifft(awN + [0x00] * (I - N), p, ρ)
    BwI = fft.ifft(bwN + [0x00] * (I - N), p, ρ)
    CwI = fft.ifft(cwN + [0x00] * (I - N), p, ρ)
    awI = fft.coset_fft(AwI, q, p, ρ)
    bwI = fft.coset_fft(BwI, q, p, ρ)
    cwI = fft.coset_fft(CwI, q, p, ρ)
    hI = [(ρ - 1) // 2 * (aw * bw - cw) % ρ for aw, bw, cw in zip(awI, bwI, cwI, strict=True)]
    HI = fft.coset_ifft(hI, q, p, ρ)
    A1 = pk.α1 + pk.δ1 * Fr(str(r))
    A1 = dot_prod_parallel(A1, pk.x1I, AwI)
    B1 = pk.β1 + pk.δ1 * Fr(str(s))
    B1 = dot_prod_parallel(B1, pk.x1I, BwI)
    B2 = pk.β2 + pk.δ2 * Fr(str(s))
    B2 = dot_prod_parallel(B2, pk.x2I, BwI)
    C1 = A1 * Fr(str(s)) + B1 * Fr(str(r)) - pk.δ1 * Fr(str(r * s % ρ))
    C1 = dot_prod_parallel(C1, pk.y1I, HI)
    C1 = dot_prod_parallel(C1, pk.v1V, vV)
    return Proof(
        A1=A1,
        B2=B2,
        C1=C1,
    )


def verify(proof: Proof, inputs: list[Fld], vk: VKey, names: Iterable[str] | None = None) -> Result:
    # Structural checks come first and raise MalformedProof, a proof that is well formed but does not
    # pass the pairing check gives a Result with passed=False.
    if not isinstance(proof, Proof):
        raise MalformedProof("expected a proof, got {}".format(type(proof).__name__))
    if len(inputs) != vk.input_count or len(vk.u1U) != vk.stmt_count:
        raise MalformedProof("expected {} public inputs, got {}".format(vk.input_count, len(inputs)))
    if not all(isinstance(u, Fld) and 0 <= u < ρ for u in inputs):
        raise MalformedProof("public inputs have to be field elements")
    names = ["x{}".format(i) for i in range(len(inputs))] if names is None else list(names)
    if len(names) != len(inputs):
        raise MalformedProof("expected {} public input names, got {}".format(len(inputs), len(names)))
    D1 = vk.u1U[0]  # the constant ONE
    D1 = dot_prod_parallel(D1, vk.u1U[1:], inputs)
    return Result(
        passed=pairing(proof.A1, proof.B2) == pairing(vk.α1, vk.β2) * pairing(D1, vk.γ2) * pairing(proof.C1, vk.δ2),
        values=list(zip(names, inputs, strict=True)),
    )

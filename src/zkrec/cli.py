import argparse
import io
import random

from pymcl import r as ρ

from . import codec, groth16
from .circuits import Factorization, synthesize
from .cyclic import RecursionChain, fixed_point
from .gadget import Mode, VerifierGadget, verify_deferred
from .groth16 import Key, Result, prove, setup, verify
from .store import PARAMS, PROOF, PUBLIC, SHAPE, VERIFICATION_KEY, ArtifactStore


class StoreKVPairs(argparse.Action):
    def __call__(self, parser, namespace, values, option_string=None):
        # -a may be given more than once, later pairs extend the earlier ones
        result = dict(getattr(namespace, self.dest) or {})
        for value in values:
            k, _, v = value.rpartition("=")
            result[k] = int(v, 0) % ρ
        setattr(namespace, self.dest, result)


def make_rng(seed: int | None) -> random.Random:
    # a seed makes every key and proof reproducible, which is only acceptable for tests and demos
    return random.SystemRandom() if seed is None else random.Random(seed)


def save_key(store: ArtifactStore, key: Key, shape_data: bytes) -> None:
    file = io.BytesIO()
    key.dumps(file)
    print("Saving parameters to:", store.save(PARAMS, file.getvalue()))
    print("Saving constraint shape to:", store.save(SHAPE, shape_data))
    print("Saving verification key to:", store.save(VERIFICATION_KEY, codec.dumps(codec.vk_to_json(key.get_vk()))))


def load_key(store: ArtifactStore) -> Key:
    print("Loading parameters from:", store.path(PARAMS))
    return Key.loads(io.BytesIO(store.load(PARAMS)))


def save_proof(store: ArtifactStore, proof, names, inputs) -> None:
    print("Saving proof to:", store.save(PROOF, codec.dumps(codec.proof_to_json(proof))))
    print("Saving public inputs to:", store.save(PUBLIC, codec.dumps(codec.public_to_json(names, inputs))))


def load_proof(store: ArtifactStore):
    print("Loading proof from:", store.path(PROOF))
    proof = codec.proof_from_json(codec.loads(store.load(PROOF)))
    print("Loading public inputs from:", store.path(PUBLIC))
    names, inputs = codec.public_from_json(codec.loads(store.load(PUBLIC)))
    return proof, names, inputs


def report(result: Result, what: str = "Verification") -> None:
    if result.passed:
        print(what, "passed!")
        print("Public entries:", "{" + ", ".join(f"{k} = {u}" for k, u in result.values) + "}")
    else:
        print(what, "failed!")


def main(argv=None):
    parser = argparse.ArgumentParser(description="zkrec Groth16 prover/verifier with recursive verifier circuits")
    parser.add_argument("-o", "--out", type=str, default=".", help="directory of the artifacts (default: .)")
    parser.add_argument("-j", "--threads", type=int, default=None, help="number of worker processes (default: number of CPU cores)")
    parser.add_argument("-s", "--seed", type=int, default=None, help="seed the randomness, for reproducible test runs only")

    subparsers = parser.add_subparsers(dest="command", required=True, help="sub-command")

    subparsers.add_parser("setup", help="set up the factorization circuit", description="Set up the parameters of the factorization circuit and write them to the artifact directory.")

    parser_prove = subparsers.add_parser("prove", help="prove a factorization", description="Generate a proof that p * q = N and write it to the artifact directory.")
    parser_prove.add_argument("-a", "--args", action=StoreKVPairs, nargs="*", default={}, help="the witness as key=value pairs, p and q are required, N defaults to p * q")

    subparsers.add_parser("verify", help="verify a factorization proof", description="Verify the stored factorization proof against its public inputs.")

    parser_recurse = subparsers.add_parser("recurse", help="prove the stored proof again", description="Set up the verifier circuit for the stored proof, prove it and verify the result.")
    parser_recurse.add_argument("-m", "--mode", choices=[mode.value for mode in Mode], default=Mode.PLACEHOLDER.value, help="verifier circuit mode (default: placeholder)")

    parser_chain = subparsers.add_parser("chain", help="run a cyclic recursion chain", description="Build the cyclic circuit, prove a chain of steps and verify the last proof.")
    parser_chain.add_argument("-n", "--steps", type=int, default=3, help="number of proofs in the chain (default: 3)")
    parser_chain.add_argument("-m", "--mode", choices=[mode.value for mode in Mode], default=Mode.CHECKED.value, help="cyclic circuit mode (default: checked)")

    args = parser.parse_args(argv)

    def require(store: ArtifactStore, *names: str) -> None:
        for name in names:
            if not store.exists(name):
                parser.error("missing artifact {}, run the previous sub-command first".format(store.path(name)))

    groth16.THREADS = args.threads
    rng = make_rng(args.seed)
    store = ArtifactStore(args.out)

    if args.command == "setup":
        circuit = Factorization()
        print("Setting up parameters for proving and verifying...")
        key = setup(circuit, rng)
        print("Dimension of the witness vector:", key.wire_count)
        print("Number of constraints:", key.gate_count)
        print("Number of public entries:", key.stmt_count)
        save_key(store, key, synthesize(circuit).shape().dumps())

    elif args.command == "prove":
        if "p" not in args.args or "q" not in args.args:
            raise ValueError("p and q must be provided as -a p=... q=...")
        require(store, PARAMS)
        witness = Factorization.assign(args.args["p"], args.args["q"], args.args.get("N"))
        key = load_key(store)
        print("Generating proof...")
        proof = prove(Factorization(), witness, key.get_pk(), rng)
        save_proof(store, proof, ["N"], [witness["N"]])

    elif args.command == "verify":
        require(store, VERIFICATION_KEY, PROOF, PUBLIC)
        vk = codec.vk_from_json(codec.loads(store.load(VERIFICATION_KEY)))
        proof, names, inputs = load_proof(store)
        print("Verifying proof...")
        report(verify(proof, inputs, vk, names))

    elif args.command == "recurse":
        mode = Mode(args.mode)
        require(store, VERIFICATION_KEY, PROOF, PUBLIC)
        inner_vk = codec.vk_from_json(codec.loads(store.load(VERIFICATION_KEY)))
        inner, names, inputs = load_proof(store)
        outer_store = store.scoped("recursive_")
        gadget = VerifierGadget(inner_vk, mode)
        print("Setting up parameters for the verifier circuit ({} mode)...".format(mode.value))
        key = setup(gadget, rng)
        save_key(outer_store, key, synthesize(gadget).shape().dumps())
        print("Generating recursive proof...")
        proof = prove(gadget, gadget.assign(inner, inputs), key.get_pk(), rng)
        outer_inputs = gadget.inputs(inner, inputs)
        save_proof(outer_store, proof, gadget.names(), outer_inputs)
        print("Verifying recursive proof...")
        if mode is Mode.PLACEHOLDER:
            print("Warning: placeholder mode, the recursive proof asserts nothing about the inner proof.")
            report(verify(proof, outer_inputs, key.get_vk(), gadget.names()), "Recursive verification")
        else:
            report(verify_deferred(proof, outer_inputs, key.get_vk(), inner_vk), "Recursive verification")

    elif args.command == "chain":
        if args.steps < 1:
            raise ValueError("a chain has at least one proof")
        mode = Mode(args.mode)
        print("Computing the cyclic circuit shape and its parameters...")
        step, key = fixed_point(mode, rng)
        chain_store = store.scoped("chain_")
        save_key(chain_store, key, synthesize(step).shape().dumps())
        chain = RecursionChain(step, key, rng)
        print("Generating base case proof...")
        chain.start()
        for i in range(1, args.steps):
            print("Generating recursive step proof {}...".format(i))
            chain.step()
        proof, inputs = chain.head
        save_proof(chain_store, proof, step.names(), inputs)
        print("Verifying last proof...")
        report(chain.finish(), "Chain verification")
        print("Chain audit:", "passed" if chain.audit() else "failed")


if __name__ == "__main__":
    main()

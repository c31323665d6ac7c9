"""Portable JSON forms of the verification key, the proof and the public inputs.

Group elements are written as the list of decimal strings of their coordinates, so no value ever passes
through a JSON number and loses precision. The binary forms in groth16 stay the canonical encoding, these
are meant for exchange with other tools.
"""

import json
from typing import Any

from pymcl import G1, G2, r as ρ

from .errors import MalformedProof
from .groth16 import Proof, VKey
from .types import Fld


def point_to_json(P: G1 | G2) -> list[str]:
    return str(P).split()


def g1_from_json(x: Any) -> G1:
    return _point(G1, x)


def g2_from_json(x: Any) -> G2:
    return _point(G2, x)


def _point(Group, x: Any):
    if not isinstance(x, list) or not all(isinstance(t, str) for t in x):
        raise MalformedProof("a group element is a list of decimal strings")
    try:
        return Group(" ".join(x))
    except Exception as e:
        raise MalformedProof("invalid {} element".format(Group.__name__)) from e


def fld_from_json(x: Any) -> Fld:
    if not isinstance(x, str) or not (x.isascii() and x.isdigit()):
        raise MalformedProof("a field element is a decimal string")
    u = int(x)
    if u >= ρ:
        raise MalformedProof("field element out of range")
    return u


def _get(obj: Any, key: str) -> Any:
    if not isinstance(obj, dict) or key not in obj:
        raise MalformedProof("missing field {}".format(key))
    return obj[key]


# verification key


def vk_to_json(vk: VKey) -> dict:
    return {
        "alpha": point_to_json(vk.α1),
        "beta": point_to_json(vk.β2),
        "gamma": point_to_json(vk.γ2),
        "delta": point_to_json(vk.δ2),
        "gamma_abc": [point_to_json(U) for U in vk.u1U],
    }


def vk_from_json(obj: Any) -> VKey:
    gamma_abc = _get(obj, "gamma_abc")
    if not isinstance(gamma_abc, list) or not gamma_abc:
        raise MalformedProof("gamma_abc has to be a non-empty list")
    return VKey(
        stmt_count=len(gamma_abc),
        α1=g1_from_json(_get(obj, "alpha")),
        β2=g2_from_json(_get(obj, "beta")),
        γ2=g2_from_json(_get(obj, "gamma")),
        δ2=g2_from_json(_get(obj, "delta")),
        u1U=[g1_from_json(U) for U in gamma_abc],
    )


# proof


def proof_to_json(proof: Proof) -> dict:
    return {
        "a": point_to_json(proof.A1),
        "b": point_to_json(proof.B2),
        "c": point_to_json(proof.C1),
    }


def proof_from_json(obj: Any) -> Proof:
    return Proof(
        A1=g1_from_json(_get(obj, "a")),
        B2=g2_from_json(_get(obj, "b")),
        C1=g1_from_json(_get(obj, "c")),
    )


# public inputs, as a mapping from the names of the public entries to their values


def public_to_json(names: list[str], inputs: list[Fld]) -> dict:
    return {name: str(u) for name, u in zip(names, inputs, strict=True)}


def public_from_json(obj: Any) -> tuple[list[str], list[Fld]]:
    if not isinstance(obj, dict):
        raise MalformedProof("public inputs have to be a mapping")
    return list(obj), [fld_from_json(u) for u in obj.values()]


def dumps(obj: dict) -> bytes:
    return json.dumps(obj, indent=2).encode()


def loads(data: bytes) -> Any:
    try:
        return json.loads(data)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedProof("invalid JSON") from e

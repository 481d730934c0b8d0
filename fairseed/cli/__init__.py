"""
fairseed.cli
------------

Offline tooling for producing and checking fairseed data. Every command
prints JSON on stdout.

Commands:
  - secret        : Draw fresh secrets from the configured entropy source.
  - commit        : Commitment of a secret (optionally check one).
  - batch         : Build a Merkle batch and print its root (+ selected leaf proofs).
  - verify-leaf   : Check one leaf (root, index, secret, proof) from a JSON file.
  - simulate      : Run a local commit-reveal round and print its transcript.
  - verify-round  : Recompute a round's seed from a JSON transcript.
  - audit         : Re-run round / leaf checks against a ledger database.

Configuration is read from FAIRSEED_* environment variables, or from a
JSON/YAML file given with --config.

Example:
  fairseed simulate --parties alice,bob,carol > round.json
  fairseed verify-round round.json
  python -m fairseed.cli batch --size 16 --prove 3
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import typer

from ..adapters.ledger import EntryKind, KVLedger
from ..commit_reveal.commit import DEFAULT_COMMITMENT
from ..commit_reveal.coordinator import RevealCoordinator
from ..config import FairseedConfig
from ..entropy.generator import FileEntropy, SecretGenerator
from ..errors import FairseedError, ProtocolViolation
from ..merkle.tree import MerkleBatch
from ..store import open_store
from ..store.sqlite import SQLiteKeyValue
from ..types.core import InclusionProof
from ..types.state import RoundPolicy
from ..utils.bytes import from_hex, to_hex
from ..verifier import audit_leaf, audit_round, verify_leaf, verify_round
from ..version import __version__

__all__ = ["app", "main"]

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="fairseed",
    help="Verifiable commit-reveal randomness and Merkle-batched secrets.",
    no_args_is_help=True,
    add_completion=False,
)


class _State:
    cfg: FairseedConfig = FairseedConfig()


_state = _State()


# -----------------------
# Helpers
# -----------------------


def _echo(obj: Any) -> None:
    typer.echo(json.dumps(obj, indent=2, sort_keys=True))


def _fail(e: Exception) -> None:
    out: Dict[str, Any] = {"ok": False, "error": type(e).__name__, "message": str(e)}
    if isinstance(e, ProtocolViolation):
        out["party"] = e.party
    _echo(out)
    raise typer.Exit(code=1)


def _load_json(path: Path) -> Dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise typer.BadParameter(f"cannot read JSON from {path}: {e}") from e
    if not isinstance(data, dict):
        raise typer.BadParameter(f"{path} must contain a JSON object")
    return data


def _generator(cfg: FairseedConfig) -> SecretGenerator:
    source = FileEntropy(cfg.entropy_device) if cfg.entropy_device else None
    return SecretGenerator(source, secret_bytes=cfg.secret_bytes)


def _open_ledger(target: str) -> KVLedger:
    if "://" in target:
        return KVLedger(open_store(target))
    if not Path(target).exists():
        raise typer.BadParameter(f"ledger database {target} does not exist")
    return KVLedger(SQLiteKeyValue(target, read_only=True))


@app.callback()
def _root(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="JSON/YAML config file."),
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level for stderr."),
) -> None:
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    try:
        _state.cfg = FairseedConfig.from_file(str(config)) if config else FairseedConfig.from_env()
    except (OSError, ValueError) as e:
        raise typer.BadParameter(str(e)) from e


# -----------------------
# Commands
# -----------------------


@app.command("version")
def cmd_version() -> None:
    """Print the package version."""
    _echo({"version": __version__})


@app.command("secret")
def cmd_secret(
    count: int = typer.Option(1, "--count", "-n", min=1, max=100_000, help="Number of secrets."),
) -> None:
    """Draw fresh secrets and their commitments."""
    try:
        secrets = _generator(_state.cfg).generate(count)
    except FairseedError as e:
        _fail(e)
        return
    _echo({"secrets": [{"secret": to_hex(s), "commitment": to_hex(DEFAULT_COMMITMENT.commit(s))} for s in secrets]})


@app.command("commit")
def cmd_commit(
    secret: str = typer.Argument(..., help="0x-hex secret."),
    check: Optional[str] = typer.Option(None, "--check", help="0x-hex commitment to verify against."),
) -> None:
    """Compute H(tag || secret); with --check, report whether it opens that commitment."""
    try:
        s = from_hex(secret)
        c = DEFAULT_COMMITMENT.commit(s)
    except (TypeError, ValueError) as e:
        raise typer.BadParameter(str(e)) from e
    out: Dict[str, Any] = {"commitment": to_hex(c)}
    if check is not None:
        out["matches"] = DEFAULT_COMMITMENT.verify(s, check)
    _echo(out)


@app.command("batch")
def cmd_batch(
    size: Optional[int] = typer.Option(None, "--size", "-s", min=1, help="Leaves (default: config batch.size)."),
    prove: Optional[List[int]] = typer.Option(None, "--prove", "-p", help="Leaf index to print with its proof (repeatable)."),
) -> None:
    """Build a batch over fresh secrets and print its root."""
    n = size or _state.cfg.batch.size
    try:
        batch = MerkleBatch.build(_generator(_state.cfg).generate(n))
        leaves = [
            {
                "root": to_hex(batch.root),
                "index": i,
                "secret": to_hex(batch.secret(i)),
                "proof": batch.prove_index(i).to_dict(),
            }
            for i in (prove or [])
        ]
    except FairseedError as e:
        _fail(e)
        return
    _echo({"root": to_hex(batch.root), "size": batch.size, "leaves": leaves})


@app.command("verify-leaf")
def cmd_verify_leaf(
    path: Path = typer.Argument(..., help='JSON file: {"root", "index", "secret", "proof"}.'),
) -> None:
    """Check a leaf against a batch root. Exit code 1 if it does not verify."""
    data = _load_json(path)
    try:
        proof = InclusionProof.from_dict(data["proof"])
        ok = verify_leaf(data["root"], int(data["index"]), data["secret"], proof)
    except (KeyError, TypeError, ValueError):
        ok = False
    _echo({"valid": ok})
    if not ok:
        raise typer.Exit(code=1)


@app.command("simulate")
def cmd_simulate(
    parties: str = typer.Option("alice,bob", "--parties", help="Comma-separated participant ids."),
    threshold: Optional[int] = typer.Option(None, "--threshold", "-k", help="k for k-of-n (default: config)."),
    round_id: Optional[str] = typer.Option(None, "--round", "-r", help="Round id (default: random)."),
) -> None:
    """Run a local round (every party honest) and print a verifiable transcript."""
    cfg = _state.cfg
    names = [p.strip() for p in parties.split(",") if p.strip()]
    k = threshold if threshold is not None else cfg.round.threshold
    gen = _generator(cfg)
    coord = RevealCoordinator(default_timeout_s=cfg.round.timeout_s, default_scheme=cfg.round.scheme)
    try:
        policy = RoundPolicy(threshold=k, retain_partial=cfg.round.retain_partial)
        rid = coord.open_round(names, policy, round_id=round_id)
        secrets = {p: gen.generate_one() for p in names}
        for p in names:
            coord.submit_commitment(rid, p, DEFAULT_COMMITMENT.commit(secrets[p]))
        for p in names:
            if coord.submit_reveal(rid, p, secrets[p]).terminal:
                break
        view = coord.round(rid)
    except (FairseedError, ValueError) as e:
        _fail(e)
        return
    _echo(
        {
            "round_id": rid,
            "participants": list(view.participants),
            "policy": view.policy.to_dict(),
            "scheme": view.scheme,
            "commitments": {p: to_hex(c) for p, c in view.commitments},
            "reveals": {p: to_hex(s) for p, s in view.reveals},
            "entropy": [to_hex(e) for e in view.entropy],
            "seed": None if view.seed is None else view.seed.hex(),
        }
    )


@app.command("verify-round")
def cmd_verify_round(
    path: Path = typer.Argument(..., help="JSON transcript (as printed by `simulate`)."),
) -> None:
    """
    Recompute a round's seed from its commitments and reveals.

    If the transcript carries a "seed", report whether it matches. Protocol
    violations and missing data exit with code 1 and name the error.
    """
    data = _load_json(path)
    try:
        seed = verify_round(
            data["round_id"],
            data.get("commitments", {}),
            data.get("reveals", {}),
            policy=RoundPolicy.from_dict(data.get("policy") or {}),
            participants=data.get("participants"),
            scheme=data.get("scheme") or _state.cfg.round.scheme,
            extra_entropy=[from_hex(e) for e in data.get("entropy", [])],
        )
    except FairseedError as e:
        _fail(e)
        return
    except (KeyError, TypeError, ValueError) as e:
        raise typer.BadParameter(f"malformed transcript: {e}") from e
    out: Dict[str, Any] = {"ok": True, "seed": seed.to_dict()}
    claimed = data.get("seed")
    if claimed:
        out["matches"] = from_hex(claimed) == seed.value
        out["ok"] = out["matches"]
    _echo(out)
    if not out["ok"]:
        raise typer.Exit(code=1)


@app.command("audit")
def cmd_audit(
    ledger: str = typer.Argument(..., help="SQLite ledger path, or a storage URI."),
    round_id: Optional[str] = typer.Option(None, "--round", "-r", help="Audit one round."),
    batch_id: Optional[str] = typer.Option(None, "--batch", "-b", help="Audit a leaf of this batch (needs --index)."),
    index: Optional[int] = typer.Option(None, "--index", "-i", help="Leaf index for --batch."),
) -> None:
    """Re-run checks from published records only. Without options, audits every round."""
    led = _open_ledger(ledger)
    try:
        if batch_id is not None:
            if index is None:
                raise typer.BadParameter("--batch needs --index")
            ok = audit_leaf(led, batch_id, index)
            _echo({"batch_id": batch_id, "index": index, "valid": ok})
            if not ok:
                raise typer.Exit(code=1)
            return
        ids: Sequence[str] = [round_id] if round_id else [d["round_id"] for d in led.iter_kind(EntryKind.ROUND)]
        reports = [audit_round(led, rid).to_dict() for rid in ids]
    except FairseedError as e:
        _fail(e)
        return
    finally:
        led.close()
    _echo({"rounds": reports, "ok": all(r["matches"] for r in reports)})
    if not all(r["matches"] for r in reports):
        raise typer.Exit(code=1)


def main(argv: Optional[Sequence[str]] = None) -> None:  # pragma: no cover - thin wrapper
    """Entry-point for the `fairseed` console script and `python -m fairseed.cli`."""
    try:
        app(args=list(argv) if argv is not None else None, prog_name="fairseed")
    except KeyboardInterrupt:
        typer.echo("", err=True)
        sys.exit(130)


if __name__ == "__main__":  # pragma: no cover
    main()

"""Command-line interface implementation for the audit tooling."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from contextlib import contextmanager
from dataclasses import asdict
from pathlib import Path
from typing import Iterator, Sequence

from ..adapters import ConnectivityError, KubernetesClusterSource, ManifestFileSource, OpaPolicyEvaluator
from ..config import AuditConfig, load_config
from ..explain import ConfigError, ExplainerConfig, ExplanationResolver
from ..logging_config import configure_logging
from ..models import FindingSeverity
from ..reporting import AuditReport, OutputFormat, RenderError, create_formatter
from ..rules import PolicyManager, PolicyManifestError
from ..service import AuditService, ScanCancelled

_LOG = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_THRESHOLD = 1
EXIT_ERROR = 2
EXIT_CANCELLED = 130


def build_parser() -> argparse.ArgumentParser:
    """Construct the CLI argument parser."""

    parser = argparse.ArgumentParser(prog="devguardian", description="Kubernetes security audit CLI")
    subparsers = parser.add_subparsers(dest="command")

    audit_parser = subparsers.add_parser(
        "audit",
        help="Audit a Kubernetes cluster and explain the findings.",
    )
    audit_parser.add_argument(
        "-o",
        "--output",
        default=None,
        help=(
            f"Output format ({', '.join(item.value for item in OutputFormat)}). "
            "Unknown formats fall back to cli."
        ),
    )
    audit_parser.add_argument(
        "-a",
        "--ai-provider",
        default=None,
        help="Explanation provider (openai, ollama). Omit for rule-based explanations.",
    )
    audit_parser.add_argument("-k", "--api-key", default=None, help="API key for OpenAI.")
    audit_parser.add_argument("-m", "--model", default=None, help="Model name to use.")
    audit_parser.add_argument("-u", "--ollama-url", default=None, help="URL for the Ollama server.")
    audit_parser.add_argument(
        "-f",
        "--file",
        type=Path,
        default=None,
        help="Write the report to this file instead of stdout.",
    )
    audit_parser.add_argument("--kubeconfig", default=None, help="Path to the kubeconfig file.")
    audit_parser.add_argument("--context", default=None, help="Kubeconfig context to use.")
    audit_parser.add_argument(
        "--manifest",
        dest="manifests",
        action="append",
        type=Path,
        default=None,
        help="Audit exported YAML/JSON manifests instead of a live cluster. Repeatable.",
    )
    audit_parser.add_argument(
        "--policy-manifest",
        dest="policy_manifests",
        action="append",
        default=None,
        help="Policy manifest YAML/JSON listing Rego modules to evaluate. Repeatable.",
    )
    audit_parser.add_argument(
        "--no-default-policies",
        action="store_true",
        help="Do not load the bundled policy manifest.",
    )
    audit_parser.add_argument("--opa-bin", default=None, help="Name or path of the opa executable.")
    audit_parser.add_argument("--config", type=Path, default=None, help="YAML configuration file.")
    audit_parser.add_argument("--log-level", default=None, help="Logging level (DEBUG, INFO, ...).")
    audit_parser.add_argument("--log-file", type=Path, default=None, help="Also write logs to this file.")
    audit_parser.add_argument(
        "--fail-on",
        choices=[severity.value.lower() for severity in FindingSeverity],
        default=None,
        help="Exit with status 1 when findings at or above this severity are present.",
    )

    return parser


def _merge_arguments(config: AuditConfig, args: argparse.Namespace) -> AuditConfig:
    if args.output:
        config.output_format = args.output
    if args.log_level:
        config.log_level = args.log_level.upper()
    if args.opa_bin:
        config.opa_executable = args.opa_bin
    if args.kubeconfig:
        config.kubeconfig = args.kubeconfig
    if args.context:
        config.context = args.context
    if args.policy_manifests:
        config.policy_manifests = list(config.policy_manifests) + list(args.policy_manifests)

    explainer: ExplainerConfig = config.explainer
    if args.ai_provider is not None:
        explainer.provider = args.ai_provider
    if args.api_key:
        explainer.api_key = args.api_key
    if args.model:
        explainer.model_name = args.model
    if args.ollama_url:
        explainer.base_url = args.ollama_url
    return config


def create_service(
    config: AuditConfig,
    *,
    manifests: Sequence[Path] | None = None,
    include_default_policies: bool = True,
) -> AuditService:
    """Create an audit service wired to the cluster (or manifests) and OPA."""

    manager = PolicyManager() if include_default_policies else PolicyManager(default_manifests=[])
    policies, policy_errors = manager.enabled_modules(config.policy_manifests)

    if manifests:
        source = ManifestFileSource(manifests)
    else:
        source = KubernetesClusterSource(kubeconfig=config.kubeconfig, context=config.context)

    evaluator = OpaPolicyEvaluator(opa_executable=config.opa_executable, timeout=config.policy_timeout)
    return AuditService(
        source,
        policy_evaluator=evaluator,
        policies=policies,
        policy_errors=policy_errors,
    )


def create_resolver(config: ExplainerConfig) -> ExplanationResolver:
    return ExplanationResolver.from_config(config)


@contextmanager
def _interrupt_sets(event: threading.Event) -> Iterator[None]:
    """Turn Ctrl-C into a cancellation request honoured at the next boundary."""

    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def handler(signum: int, frame: object) -> None:
        _LOG.warning("Interrupt received; stopping at the next checkpoint")
        event.set()

    previous = signal.signal(signal.SIGINT, handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def _error(message: str) -> None:
    print(f"Error: {message}", file=sys.stderr)


def _write_stdout(payload: bytes) -> None:
    # The report is UTF-8 regardless of the terminal encoding.
    sys.stdout.flush()
    sys.stdout.buffer.write(payload + b"\n")
    sys.stdout.buffer.flush()


def _handle_audit(args: argparse.Namespace) -> int:
    try:
        config = _merge_arguments(load_config(args.config), args)
    except ConfigError as exc:
        _error(str(exc))
        return EXIT_ERROR

    configure_logging(config.log_level, args.log_file)

    try:
        service = create_service(
            config,
            manifests=args.manifests,
            include_default_policies=not args.no_default_policies,
        )
    except PolicyManifestError as exc:
        _error(str(exc))
        return EXIT_ERROR

    cancel_event = threading.Event()
    resolver = create_resolver(config.explainer)
    try:
        with _interrupt_sets(cancel_event):
            _LOG.info("Running cluster audit...")
            result = service.scan(cancel_event=cancel_event)
            _LOG.info("Found %d potential security issues", len(result.findings))
            explanations = resolver.explain_all(result.findings, cancel_event=cancel_event)
    except ConnectivityError as exc:
        _error(f"scan failed: {exc}")
        return EXIT_ERROR
    except ScanCancelled as exc:
        _error(str(exc))
        return EXIT_CANCELLED
    finally:
        resolver.close()
        service.close()

    metadata = dict(result.metadata)
    metadata["errors"] = [asdict(error) for error in result.errors]
    report = AuditReport.build(result.findings, explanations, metadata)

    try:
        payload = create_formatter(config.output_format).format(report)
    except RenderError as exc:
        _error(f"formatting report failed: {exc}")
        return EXIT_ERROR

    if args.file is not None:
        try:
            args.file.write_bytes(payload)
        except OSError as exc:
            _error(f"writing report to {args.file} failed: {exc}")
            return EXIT_ERROR
        _LOG.info("Report saved to %s", args.file)
    else:
        _write_stdout(payload)

    if args.fail_on:
        threshold = FindingSeverity.parse(args.fail_on)
        highest = report.highest_severity
        if highest is not None and highest.rank >= threshold.rank:
            return EXIT_THRESHOLD

    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point used by tests and the ``python -m`` invocation."""

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "audit":
        return _handle_audit(args)

    parser.print_help()
    return EXIT_OK


def run() -> None:  # pragma: no cover - thin wrapper for module execution
    """Execute the CLI and exit with the produced status code."""

    raise SystemExit(main())


if __name__ == "__main__":  # pragma: no cover - module execution guard
    run()

#!/usr/bin/env python3
"""
k8s namespace guard - validating admission webhook for namespace deletion.

Denies DELETE of a namespace that still holds workload resources, unless the namespace
carries the bypass annotation.
"""

import argparse
import dataclasses
import logging
import sys
from typing import Any, Dict, Optional

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", stream=sys.stderr
)


def config_from_args(args: argparse.Namespace):
    """Environment config with any explicitly passed CLI flags layered on top."""
    from nsguard.core.config import load_guard_config

    overrides: Dict[str, Any] = {}
    for field in ("host", "port", "cert_file", "key_file", "client_ca_file", "kubeconfig"):
        value = getattr(args, field, None)
        if value is not None:
            overrides[field] = value
    if args.client_auth:
        overrides["client_auth"] = True
    if args.admit_all:
        overrides["admit_all"] = True
    return dataclasses.replace(load_guard_config(), **overrides)


def review_from_file(path: Optional[str], *, admit_all: bool) -> Dict[str, Any]:
    """
    Evaluate one AdmissionReview offline against the current cluster.

    Reads JSON from `path` (stdin when omitted or "-") and returns the response envelope
    the webhook would have sent.
    """
    from nsguard.api.webhook import (
        MalformedReviewError,
        build_response,
        evaluate_review,
        malformed_review_verdict,
        parse_review,
    )

    if path and path != "-":
        with open(path, "rb") as f:
            body = f.read()
    else:
        body = sys.stdin.buffer.read()

    try:
        review = parse_review(body)
    except MalformedReviewError as e:
        return build_response(e.fallback_review(), malformed_review_verdict(e))

    verdict = evaluate_review(review, admit_all=admit_all)
    return build_response(review, verdict)


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Namespace deletion guard admission webhook",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve the webhook over HTTPS (in-cluster)
  python main.py --serve-webhook --port 443 --client-auth

  # Evaluate a captured AdmissionReview against the current kube context
  python main.py --review-file review.json --kubeconfig ~/.kube/config
        """,
    )

    parser.add_argument(
        "--serve-webhook",
        action="store_true",
        help="Run the HTTPS admission webhook server",
    )
    parser.add_argument(
        "--review-file",
        metavar="PATH",
        help="Evaluate an AdmissionReview JSON file ('-' for stdin) and print the response envelope",
    )
    parser.add_argument("--host", default=None, help="Webhook server bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=None, help="Webhook server listen port (default: 443)")
    parser.add_argument("--cert-file", default=None, help="The cert file for the https server")
    parser.add_argument("--key-file", default=None, help="The key file for the https server")
    parser.add_argument(
        "--client-ca-file", default=None, help="The cluster root CA that signs the apiserver client cert"
    )
    parser.add_argument(
        "--client-auth",
        action="store_true",
        help="Require and verify the client (apiserver) certificate during the TLS handshake",
    )
    parser.add_argument(
        "--admit-all",
        action="store_true",
        help="Admit all namespace deletions without validation (emergency escape hatch)",
    )
    parser.add_argument(
        "--kubeconfig",
        default=None,
        help="Path to a kubeconfig file; if unset uses in-cluster config, then the default kubeconfig",
    )

    args = parser.parse_args()

    try:
        cfg = config_from_args(args)

        if args.serve_webhook:
            from nsguard.api.webhook import run as run_webhook

            run_webhook(cfg)
            return

        if args.review_file:
            import json

            from nsguard.providers import k8s_provider

            k8s_provider.configure(kubeconfig=cfg.kubeconfig, request_timeout_seconds=cfg.request_timeout_seconds)
            out = review_from_file(args.review_file, admit_all=cfg.admit_all)
            print(json.dumps(out, indent=2, sort_keys=False))
            return

        parser.print_help()

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        raise


if __name__ == "__main__":
    main()

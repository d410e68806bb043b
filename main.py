#!/usr/bin/env python3
"""
Project Request Limit - admission webhook for project creation quotas.
Serves the validating webhook, or checks a single request offline against a snapshot file.
"""

import argparse
import json
import logging
import sys

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", stream=sys.stderr
)

#
# NOTE: Keep package imports lazy (inside functions) so `--check` never pulls in the
# webhook server or the kubernetes client.
#


def check_request(username: str, snapshot_file: str) -> int:
    """
    Evaluate a project creation request by `username` against a snapshot file.

    Prints the decision as JSON on stdout. Returns the process exit code
    (0 allowed, 1 denied or errored).
    """
    from projectlimit.admission.validator import PROJECT_GROUP, PROJECT_REQUESTS_RESOURCE, ProjectRequestLimitValidator
    from projectlimit.core.models import AdmissionRequest
    from projectlimit.providers.snapshot_file import load_snapshot_file

    store = load_snapshot_file(snapshot_file)
    validator = ProjectRequestLimitValidator(policy_store=store, identity_store=store, namespace_store=store)
    request = AdmissionRequest(
        uid="cli",
        operation="CREATE",
        resource={"group": PROJECT_GROUP, "version": "v1", "resource": PROJECT_REQUESTS_RESOURCE},
        userInfo={"username": username},
    )
    decision = validator.evaluate(request)
    print(json.dumps({"username": username, **decision.model_dump()}, indent=2, sort_keys=False))
    return 0 if decision.allowed else 1


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Limit the number of projects a user may request",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve the validating webhook (stores backed by the Kubernetes API)
  python main.py --serve-webhook --port 8443

  # Check whether user2 may create another project, using a snapshot file
  python main.py --check user2 --snapshot ./snapshot.yaml
        """,
    )

    parser.add_argument(
        "--serve-webhook",
        action="store_true",
        help="Run the HTTP server answering AdmissionReview requests (in-cluster)",
    )
    parser.add_argument("--host", default="0.0.0.0", help="Webhook server bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8080, help="Webhook server listen port (default: 8080)")
    parser.add_argument("--check", metavar="USERNAME", help="Evaluate a project request for USERNAME and exit")
    parser.add_argument(
        "--snapshot",
        metavar="FILE",
        help="YAML/JSON file with Namespace, User and ProjectRequestLimit objects (used with --check)",
    )

    args = parser.parse_args()

    if args.serve_webhook:
        from projectlimit.api.webhook import run as run_webhook

        run_webhook(host=args.host, port=args.port)
        return

    if args.check:
        if not args.snapshot:
            parser.error("--check requires --snapshot")
        sys.exit(check_request(args.check, args.snapshot))

    # No arguments provided
    parser.print_help()


if __name__ == "__main__":
    main()

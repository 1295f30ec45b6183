"""Entry point for running the service as a module."""

import argparse
import os
import sys
from typing import Optional, Sequence

import uvicorn

from shop_billing.config import Config, ConfigurationError
from shop_billing.main import VERSION


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shop-billing",
        description="Shop Billing - subscription activation and renewal service",
    )
    parser.add_argument(
        "--host",
        default=os.getenv("HOST", "0.0.0.0"),
        help="Host to bind to (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("PORT", "8080")),
        help="Port to bind to (default: 8080)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        choices=["json", "console"],
        default=os.getenv("LOG_FORMAT", "json"),
        help="Log output format (default: json)",
    )
    parser.add_argument(
        "--config",
        default=os.getenv("CONFIG_PATH", "config/plans.yaml"),
        help="Path to plans.yaml (default: config/plans.yaml)",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        default=os.getenv("RELOAD", "false").lower() == "true",
        help="Enable auto-reload for development (default: false)",
    )
    parser.add_argument(
        "--check-config",
        action="store_true",
        help="Validate the plan catalog and gateway secrets, then exit",
    )
    return parser


def check_config(config_path: str) -> int:
    """Load the catalog and check the secrets the service refuses to start without.

    Returns:
        Process exit code (0 when the configuration is usable)
    """
    try:
        config = Config(config_path)
        config.require_secrets()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    settings = config.settings
    print(f"Config: {config.config_path}")
    print(f"Account store: {settings.account_store}")
    for plan in config.plans:
        gateway = plan.gateway_plan_id or "manual payment only"
        print(f"  {plan.id}: {plan.name}, {plan.price} INR, {plan.months} months ({gateway})")
    if config.key_id is None:
        print("RAZORPAY_KEY_ID not set: gateway checkout disabled")
    if config.admin_api_token is None:
        print("ADMIN_API_TOKEN not set: admin routes disabled")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main entry point for the billing service."""
    args = build_parser().parse_args(argv)

    if args.check_config:
        sys.exit(check_config(args.config))

    # create_app reads these when uvicorn calls the factory
    os.environ["LOG_LEVEL"] = args.log_level
    os.environ["LOG_FORMAT"] = args.log_format
    os.environ["CONFIG_PATH"] = args.config

    if args.log_format == "console":
        print(f"Shop Billing v{VERSION} on {args.host}:{args.port} (config: {args.config})")

    try:
        uvicorn.run(
            "shop_billing.main:create_app",
            factory=True,
            host=args.host,
            port=args.port,
            log_level=args.log_level.lower(),
            reload=args.reload,
            access_log=False,  # RequestLoggingMiddleware logs requests
        )
    except KeyboardInterrupt:
        print("\nShutting down gracefully...")
        sys.exit(0)
    except Exception as e:
        print(f"Failed to start service: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()

import argparse
import json
import logging
import sys

from .claims import CognitoToken
from .config import CognitoConfig
from .errors import CognitoTokenError
from .validator import TokenValidator

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cognito-token",
        description="Validate AWS Cognito ID tokens. Settings come from AWS_COGNITO_* environment variables.",
    )
    parser.add_argument("--env-file", default=None, help="path to a .env file")
    parser.add_argument("--strict", action="store_true", help="reject malformed tokens instead of reporting them")
    parser.add_argument("-v", "--verbose", action="store_true")

    commands = parser.add_subparsers(dest="command", required=True)
    validate = commands.add_parser("validate", help="validate an ID token")
    validate.add_argument("token")
    exchange = commands.add_parser("exchange", help="exchange an authorization code, then validate the ID token")
    exchange.add_argument("code")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)

    try:
        config = CognitoConfig.from_env(args.env_file)
        validator = TokenValidator(config, strict=args.strict)
        if args.command == "exchange":
            token = CognitoToken.from_auth_code(args.code, config, validator=validator)
        else:
            token = CognitoToken.from_token(args.token, config, validator=validator)
    except CognitoTokenError as e:
        logger.error(f"{type(e).__name__}: {e}")
        print(json.dumps({"valid": False, "errors": [str(e)]}, indent=2))
        return 1

    print(json.dumps(token.properties(), indent=2))
    return 0 if token.valid else 1


if __name__ == "__main__":
    sys.exit(main())

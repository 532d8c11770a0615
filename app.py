from __future__ import annotations

import argparse
import getpass
import sys

from movi.core.config import ConfigManager
from movi.core.config.paths import ConfigFsPaths
from movi.core.errors import ConfigError, MoviError, error_message
from movi.core.logger import setup_logging
from movi.core.movi_app import MoviApp


def _print_status(app: MoviApp) -> None:
    sm = app.session
    role = sm.role.value if sm.role else "-"
    user = sm.session.user_email if sm.session else "-"
    print(f"status={sm.status.value} role={role} user={user} check={sm.check_state().value}")
    if sm.last_error is not None:
        print(f"last_error={sm.last_error.kind.value}: {sm.last_error.message}")


def main() -> None:
    ap = argparse.ArgumentParser(description="Movi client (session restore / sign-in diagnostics)")
    ap.add_argument("--root", default=".", help="Directory holding config/, secure/ and logs/.")
    ap.add_argument("--sign-in", metavar="EMAIL", help="Sign in with email (password prompted).")
    ap.add_argument("--sign-out", action="store_true", help="Sign out and clear the stored session.")
    ap.add_argument("--reset-check", action="store_true", help="Allow one more restore attempt.")
    ap.add_argument("--diagnostics-only", action="store_true", help="Check backend health and exit.")
    args = ap.parse_args()

    config = ConfigManager(fs=ConfigFsPaths(args.root))
    try:
        cfg = config.load_all()
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        sys.exit(2)

    logger = setup_logging(config.resolve_path(cfg.logging.log_dir), level=cfg.logging.level)
    config.logger = logger
    app = MoviApp.from_config(config, logger=logger)
    app.alerts.subscribe(lambda alert: print(f"[{alert.title}] {alert.message}"))

    try:
        if args.diagnostics_only:
            ok = app.api.check_health()
            print(f"backend={'ok' if ok else 'unreachable'} ({cfg.api.base_url})")
            sys.exit(0 if ok else 1)

        if args.reset_check:
            app.session.reset_session_check()

        app.on_start()

        if args.sign_out:
            app.session.sign_out()
        elif args.sign_in:
            try:
                password = getpass.getpass("Password: ")
            except (EOFError, KeyboardInterrupt):
                print("Sign-in cancelled.", file=sys.stderr)
                sys.exit(1)
            try:
                app.auth.sign_in_with_email(args.sign_in, password)
            except MoviError as e:
                print(f"Sign-in failed: {error_message(e)}", file=sys.stderr)
                sys.exit(1)

        _print_status(app)
    finally:
        app.on_stop()


if __name__ == "__main__":
    main()

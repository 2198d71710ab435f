"""CLI for the admin session service."""

import argparse
import getpass
import json
import sys

import httpx

from admin_session.auth.authenticator import ACCESS_TOKEN_HEADER, NEW_ACCESS_TOKEN_HEADER
from admin_session.auth.credentials import PasswordEncoder

DEFAULT_SERVER = "http://localhost:8000"
TOKEN_FILE = ".admin_token"


def load_token(token_file: str = TOKEN_FILE) -> str | None:
    try:
        with open(token_file) as f:
            return json.load(f).get("access_token")
    except FileNotFoundError:
        return None


def save_token(access_token: str, token_file: str = TOKEN_FILE) -> None:
    with open(token_file, "w") as f:
        json.dump({"access_token": access_token}, f)


def clear_token(token_file: str = TOKEN_FILE) -> None:
    with open(token_file, "w") as f:
        json.dump({}, f)


def adopt_renewed_token(resp: httpx.Response, token_file: str = TOKEN_FILE) -> bool:
    """Persist ``new_access_token`` when the server renewed our token."""
    new_token = resp.headers.get(NEW_ACCESS_TOKEN_HEADER)
    if not new_token:
        return False
    save_token(new_token, token_file)
    print("  Access token renewed by server and saved.")
    return True


def _print_error(resp: httpx.Response) -> None:
    try:
        body = resp.json()
        print(f"✗ {body.get('msg')} (code {body.get('code')}, HTTP {resp.status_code})")
    except ValueError:
        print(f"✗ Server error: HTTP {resp.status_code}")


def login(client: httpx.Client, username: str, password: str, token_file: str = TOKEN_FILE) -> bool:
    """Log in and save the issued token."""
    resp = client.post("/login", json={"username": username, "password": password})
    if resp.status_code != 200:
        _print_error(resp)
        return False

    save_token(resp.json()["data"], token_file)
    print("✓ Login successful!")
    print(f"  Token saved to {token_file}")
    return True


def _authorized_request(
    client: httpx.Client,
    method: str,
    path: str,
    token_file: str,
) -> httpx.Response | None:
    access_token = load_token(token_file)
    if not access_token:
        print("✗ No token found. Run 'admin-session login' first.")
        return None
    resp = client.request(method, path, headers={ACCESS_TOKEN_HEADER: access_token})
    adopt_renewed_token(resp, token_file)
    return resp


def whoami(client: httpx.Client, token_file: str = TOKEN_FILE) -> bool:
    """Show the current user, adopting a renewed token if one comes back."""
    resp = _authorized_request(client, "GET", "/me", token_file)
    if resp is None:
        return False
    if resp.status_code != 200:
        _print_error(resp)
        if resp.status_code == 401:
            print("  Run 'admin-session login' to re-authenticate.")
        return False

    user = resp.json()["data"]
    print("✓ Authenticated")
    print(f"  User: {user['display_name']} ({user['user_id']})")
    print(f"  Authorities: {', '.join(user['authorities']) or 'none'}")
    return True


def logout(client: httpx.Client, token_file: str = TOKEN_FILE) -> bool:
    resp = _authorized_request(client, "POST", "/logout", token_file)
    if resp is None:
        return False
    if resp.status_code != 200:
        _print_error(resp)
        return False
    clear_token(token_file)
    print("✓ Logged out")
    return True


def revoke(client: httpx.Client, user_id: str, token_file: str = TOKEN_FILE) -> bool:
    """Force-logout another user (requires the admin authority)."""
    resp = _authorized_request(client, "DELETE", f"/sessions/{user_id}", token_file)
    if resp is None:
        return False
    if resp.status_code != 200:
        _print_error(resp)
        return False
    print(f"✓ Session of {user_id} revoked")
    return True


def hash_password(password: str) -> str:
    return PasswordEncoder().hash(password)


def serve() -> None:
    import uvicorn

    from admin_session.config import get_settings

    settings = get_settings()
    uvicorn.run(
        "admin_session.main:create_app",
        factory=True,
        host=settings.server_host,
        port=settings.server_port,
    )


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Admin session service CLI",
        prog="admin-session",
    )
    parser.add_argument(
        "--server",
        default=DEFAULT_SERVER,
        help=f"Server URL (default: {DEFAULT_SERVER})",
    )
    parser.add_argument(
        "--token-file",
        default=TOKEN_FILE,
        help=f"Where the access token is kept (default: {TOKEN_FILE})",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    login_parser = subparsers.add_parser("login", help="Log in with username and password")
    login_parser.add_argument("username")
    login_parser.add_argument("--password", help="Prompted for when omitted")

    subparsers.add_parser("whoami", help="Show the authenticated user")
    subparsers.add_parser("logout", help="End the current session")

    revoke_parser = subparsers.add_parser("revoke", help="Force-logout a user (admin only)")
    revoke_parser.add_argument("user_id")

    hash_parser = subparsers.add_parser("hash-password", help="Print an argon2id password hash")
    hash_parser.add_argument("--password", help="Prompted for when omitted")

    subparsers.add_parser("serve", help="Run the API server")

    args = parser.parse_args()

    if args.command == "hash-password":
        print(hash_password(args.password or getpass.getpass("Password: ")))
        sys.exit(0)

    if args.command == "serve":
        serve()
        sys.exit(0)

    if args.command not in {"login", "whoami", "logout", "revoke"}:
        parser.print_help()
        sys.exit(1)

    try:
        with httpx.Client(base_url=args.server, timeout=10) as client:
            if args.command == "login":
                password = args.password or getpass.getpass("Password: ")
                success = login(client, args.username, password, args.token_file)
            elif args.command == "whoami":
                success = whoami(client, args.token_file)
            elif args.command == "logout":
                success = logout(client, args.token_file)
            else:
                success = revoke(client, args.user_id, args.token_file)
    except httpx.ConnectError:
        print(f"✗ Cannot connect to server at {args.server}")
        print("  Is the server running?")
        success = False

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()

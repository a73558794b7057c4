import argparse
import logging
from pathlib import Path
from typing import Union

from config import CONFIG_FILE, AppConfig, ConfigError, load_config, save_config
from hashing import TokenGenerationError, digest, new_token
from locks import ReadWriteLock

logger = logging.getLogger(__name__)

TOKEN_MESSAGE = "Token generated successfully. Save this token securely, it won't be shown again."


class CredentialPersistenceError(RuntimeError):
    """Raised when a newly issued token digest cannot be written to the config file."""


class CredentialGate:
    """
    Checks the master password and issues/verifies bearer tokens.

    Only digests are kept: the password hash comes from configuration and the
    token hashes grow by one per issued token. Every issuance rewrites the
    whole configuration file before the token is handed out.

    The file may also be edited by the token CLI while the server runs. Before
    each issuance the file is re-read and merged, and reads pick up a replaced
    file so CLI-issued tokens and password changes take effect.
    """

    def __init__(self, config: AppConfig, config_path: Union[str, Path, None] = None):
        self.config = config
        self.config_path = Path(config_path or config.config_file)
        self._lock = ReadWriteLock()
        self._file_state = self._stat_file()

    # --- Shared config file ---

    def _stat_file(self):
        try:
            st = self.config_path.stat()
        except OSError:
            return None
        return (st.st_ino, st.st_mtime_ns, st.st_size)

    def _merge_from_file(self):
        """Folds the on-disk password hash and token hashes into memory. Caller holds the write lock."""
        if not self.config_path.exists():
            return
        on_disk = load_config(self.config_path)
        self.config.password_hash = on_disk.password_hash
        known = set(self.config.token_hashes)
        self.config.token_hashes.extend(h for h in on_disk.token_hashes if h not in known)

    def _refresh_if_changed(self):
        if self._stat_file() == self._file_state:
            return
        with self._lock.write_locked():
            state = self._stat_file()
            if state == self._file_state:
                return
            try:
                self._merge_from_file()
            except ConfigError as e:
                logger.warning("Ignoring unreadable config file %s: %s", self.config_path, e)
            self._file_state = state

    # --- Checks ---

    def verify_password(self, candidate: str) -> bool:
        self._refresh_if_changed()
        with self._lock.read_locked():
            return digest(candidate) == self.config.password_hash

    def verify_token(self, candidate: str) -> bool:
        if not candidate:
            return False
        self._refresh_if_changed()
        token_hash = digest(candidate)
        with self._lock.read_locked():
            return any(stored == token_hash for stored in self.config.token_hashes)

    def issue_token(self) -> str:
        """
        Returns a fresh plaintext token after its digest has been saved.

        Raises TokenGenerationError if no secure randomness is available and
        CredentialPersistenceError if the config file cannot be read back or
        written; in the latter case the digest is dropped again so the token is
        never accepted.
        """
        token = new_token()
        token_hash = digest(token)

        with self._lock.write_locked():
            try:
                self._merge_from_file()
            except ConfigError as e:
                # Never overwrite a file we could not read.
                logger.error("Refusing to rewrite unreadable config file %s: %s", self.config_path, e)
                raise CredentialPersistenceError(str(e)) from e

            self.config.token_hashes.append(token_hash)
            try:
                save_config(self.config, self.config_path)
            except OSError as e:
                self.config.token_hashes.remove(token_hash)
                logger.error("Failed to save token to %s: %s", self.config_path, e)
                raise CredentialPersistenceError(str(e)) from e
            self._file_state = self._stat_file()
            count = len(self.config.token_hashes)

        logger.info("Issued new API token (%d active)", count)
        return token

    def token_count(self) -> int:
        with self._lock.read_locked():
            return len(self.config.token_hashes)


# --- Command line administration ---

def issue_token(config_path: Path):
    """Issues a token directly into the configuration file."""
    gate = CredentialGate(load_config(config_path), config_path)
    token = gate.issue_token()
    print(TOKEN_MESSAGE)
    print(f"Token: {token}")


def list_tokens(config_path: Path):
    """Lists digest prefixes of the stored tokens. Plaintext tokens are never stored."""
    config = load_config(config_path)
    if not config.token_hashes:
        print("No API tokens have been issued.")
        return

    print(f"{len(config.token_hashes)} API token(s) issued:")
    for index, token_hash in enumerate(config.token_hashes, start=1):
        print(f"- #{index}: sha256 {token_hash[:12]}...")


def hash_password(password: str):
    print(digest(password))


def set_password(config_path: Path, password: str):
    """Stores the digest of a new master password in the configuration file."""
    config = load_config(config_path)
    config.password_hash = digest(password)
    save_config(config, config_path)
    print(f"Password hash updated in {config_path}.")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Manage TaskMate API tokens and the master password.")
    parser.add_argument("--config", type=str, default=str(CONFIG_FILE), help="Path to the configuration file.")
    subparsers = parser.add_subparsers(dest="command", required=True, help="Available commands")

    subparsers.add_parser("issue", help="Issue a new API token.")
    subparsers.add_parser("list", help="Show how many tokens have been issued.")

    parser_hash = subparsers.add_parser("hash-password", help="Print the digest of a password.")
    parser_hash.add_argument("--password", type=str, required=True, help="Password to hash.")

    parser_set = subparsers.add_parser("set-password", help="Store a new master password digest.")
    parser_set.add_argument("--password", type=str, required=True, help="New master password.")

    args = parser.parse_args(argv)
    config_path = Path(args.config)

    try:
        if args.command == "issue":
            issue_token(config_path)
        elif args.command == "list":
            list_tokens(config_path)
        elif args.command == "hash-password":
            hash_password(args.password)
        elif args.command == "set-password":
            set_password(config_path, args.password)
    except (ConfigError, CredentialPersistenceError, TokenGenerationError, OSError) as e:
        print(f"Error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

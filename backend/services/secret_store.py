"""
Secret store — persistent, string-keyed device secrets.

Backs the two secrets the device keeps: the burner signing key and the
user's main wallet address. Values are Fernet-encrypted at rest when
SECRET_STORE_KEY is configured.

Every storage failure (DB unreachable, undecryptable value) is raised as
StorageError; absence of a key is not an error and returns None.
"""
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from db_models import StoredSecret
from domain.errors import StorageError

logger = logging.getLogger(__name__)


class SecretStore:
    """Async key/value secret storage on top of the secrets table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], encryption_key: str = ""):
        self._session_factory = session_factory
        self._fernet = Fernet(encryption_key.encode()) if encryption_key else None

    @property
    def encrypted(self) -> bool:
        return self._fernet is not None

    def _seal(self, value: str) -> str:
        if self._fernet is None:
            return value
        return self._fernet.encrypt(value.encode("utf-8")).decode("ascii")

    def _unseal(self, row: StoredSecret) -> str:
        if not row.encrypted:
            return row.value
        if self._fernet is None:
            raise StorageError(
                f"Secret '{row.key}' is encrypted but SECRET_STORE_KEY is not set"
            )
        try:
            return self._fernet.decrypt(row.value.encode("ascii")).decode("utf-8")
        except InvalidToken as e:
            raise StorageError(f"Secret '{row.key}' could not be decrypted") from e

    async def get(self, key: str) -> Optional[str]:
        """Return the secret value, or None if it was never set."""
        try:
            async with self._session_factory() as db:
                row = await db.get(StoredSecret, key)
                if row is None:
                    return None
                return self._unseal(row)
        except SQLAlchemyError as e:
            logger.error(f"Secret store read failed for '{key}': {e}")
            raise StorageError(details={"key": key}) from e

    async def set(self, key: str, value: str) -> None:
        """Create or overwrite a secret."""
        sealed = self._seal(value)
        try:
            async with self._session_factory() as db:
                row = await db.get(StoredSecret, key)
                if row is None:
                    db.add(StoredSecret(key=key, value=sealed, encrypted=self.encrypted))
                else:
                    row.value = sealed
                    row.encrypted = self.encrypted
                await db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Secret store write failed for '{key}': {e}")
            raise StorageError(details={"key": key}) from e

    async def delete(self, key: str) -> bool:
        """
        Erase a secret.

        Returns:
            True if a value existed and was removed, False if it was already absent
        """
        try:
            async with self._session_factory() as db:
                row = await db.get(StoredSecret, key)
                if row is None:
                    return False
                await db.delete(row)
                await db.commit()
                return True
        except SQLAlchemyError as e:
            logger.error(f"Secret store delete failed for '{key}': {e}")
            raise StorageError(details={"key": key}) from e

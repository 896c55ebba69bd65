"""
Security settings for MediaDrop.

Resolves the secret key and cookie policy for the running environment,
refuses to start a production server with unsafe settings, and checks the
filesystem locations uploads are written to before anything is stored
there.
"""

import os
import logging
import secrets
from typing import Dict, List, Any, Iterable, Optional
from dataclasses import dataclass
from pathlib import Path

from ..utils.naming import safe_basename

logger = logging.getLogger(__name__)

SECRET_KEY_VAR = 'MEDIADROP_SECRET_KEY'
MIN_SECRET_KEY_LENGTH = 32


@dataclass
class SecurityConfig:
    """Security settings derived from the environment."""
    secret_key: str
    environment: str = 'development'
    jwt_algorithm: str = "HS256"

    @property
    def is_production(self) -> bool:
        return self.environment == 'production'

    @property
    def secure_cookies(self) -> bool:
        # Cookies only travel over HTTPS in production
        return self.is_production


def current_environment() -> str:
    return os.getenv('MEDIADROP_ENVIRONMENT', 'development')


def get_security_config(secret_key: Optional[str] = None) -> SecurityConfig:
    """
    Build the security settings for the current environment.

    Args:
        secret_key: Explicit key, e.g. from application config. Falls back
            to MEDIADROP_SECRET_KEY.

    Returns:
        SecurityConfig instance

    Raises:
        ValueError: Production without a key, or with a key that is too short
    """
    environment = current_environment()
    secret_key = secret_key or os.getenv(SECRET_KEY_VAR)

    if not secret_key:
        if environment == 'production':
            raise ValueError(f"{SECRET_KEY_VAR} environment variable is required")
        logger.warning("No secret key configured; using an ephemeral development key")
        secret_key = generate_secure_secret_key()
    elif environment == 'production' and len(secret_key) < MIN_SECRET_KEY_LENGTH:
        raise ValueError(
            f"Secret key is too short (minimum {MIN_SECRET_KEY_LENGTH} characters)"
        )

    return SecurityConfig(
        secret_key=secret_key,
        environment=environment,
        jwt_algorithm=os.getenv('JWT_ALGORITHM', 'HS256'),
    )


def validate_storage_root(root: str) -> Path:
    """
    Make sure the storage root is a writable directory, creating it if needed.

    Returns:
        The resolved root path

    Raises:
        ValueError: The root cannot be created or is not writable
    """
    path = Path(root).resolve()
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ValueError(f"Storage root {path} cannot be created: {e}")

    if not path.is_dir():
        raise ValueError(f"Storage root {path} is not a directory")
    if not os.access(path, os.W_OK):
        raise ValueError(f"Storage root {path} is not writable")
    return path


def check_album_directory(storage_root: str, base_directory: str) -> str:
    """
    Validate an album base directory against the storage root.

    Returns:
        The directory relative to the root, in POSIX form

    Raises:
        ValueError: The directory is empty, is the root itself, or escapes it
    """
    if not base_directory or '\x00' in base_directory:
        raise ValueError("Album directory is required")

    root = Path(storage_root).resolve()
    target = (root / base_directory).resolve()
    try:
        relative = target.relative_to(root)
    except ValueError:
        raise ValueError(f"Album directory '{base_directory}' is outside the storage root")

    if relative == Path('.'):
        raise ValueError("Album directory must be below the storage root")
    return relative.as_posix()


def validate_production_environment(config: Dict[str, Any]) -> None:
    """
    Abort startup when a production deployment is misconfigured.

    Outside production the same problems are only logged.

    Raises:
        SystemExit: A problem was found in production
    """
    environment = current_environment()
    problems: List[str] = []

    try:
        get_security_config(config.get('api', {}).get('secret_key'))
    except ValueError as e:
        problems.append(str(e))

    if environment == 'production' and os.getenv('FLASK_DEBUG', '').lower() in ('true', '1', 'yes'):
        problems.append("FLASK_DEBUG must not be enabled in production")

    try:
        validate_storage_root(config['storage']['root'])
    except ValueError as e:
        problems.append(str(e))

    if not problems:
        logger.info(f"Security configuration OK for environment: {environment}")
        return

    for problem in problems:
        logger.error(f"  {problem}")
    if environment == 'production':
        logger.critical("Security validation failed in production. Application startup aborted.")
        raise SystemExit(1)
    logger.warning("Security validation failed; this would prevent startup in production")


def generate_secure_secret_key() -> str:
    """
    Generate a cryptographically secure secret key.

    Returns:
        A 64-character random string suitable for use as MEDIADROP_SECRET_KEY
    """
    return secrets.token_urlsafe(48)


def get_security_headers() -> Dict[str, str]:
    """
    Get security headers that should be applied to all HTTP responses.

    Returns:
        Dictionary of security headers
    """
    return {
        # Prevent MIME type sniffing
        'X-Content-Type-Options': 'nosniff',

        # Prevent clickjacking
        'X-Frame-Options': 'DENY',

        # Enforce HTTPS in production
        'Strict-Transport-Security': 'max-age=31536000; includeSubDomains' if
            current_environment() == 'production' else '',

        'Referrer-Policy': 'strict-origin-when-cross-origin',

        'Server': 'MediaDrop'
    }


def check_file_upload_security(filename: str, file_size: Optional[int],
                               allowed_extensions: Iterable[str],
                               max_file_size: int) -> Dict[str, Any]:
    """
    Validate a single uploaded file before it enters the pipeline.

    Args:
        filename: Client-supplied filename
        file_size: File size in bytes, if known
        allowed_extensions: Extensions without the leading dot; empty allows all
        max_file_size: Maximum size in bytes

    Returns:
        Dictionary with validation results
    """
    issues = []
    warnings = []

    # Browsers on Windows may send the full client path
    sanitized = safe_basename(filename)

    if not sanitized or sanitized in ('.', '..'):
        issues.append("Filename is empty")

    if '\x00' in filename:
        issues.append("Filename contains null bytes")

    if file_size is not None and file_size > max_file_size:
        issues.append(
            f"File size ({file_size:,} bytes) exceeds maximum allowed ({max_file_size:,} bytes)"
        )

    allowed = {ext.lower().lstrip('.') for ext in allowed_extensions}
    file_ext = Path(sanitized).suffix.lower().lstrip('.')
    if allowed and file_ext not in allowed:
        issues.append(f"File extension '{file_ext}' is not allowed")

    if sanitized.count('.') > 1:
        warnings.append("Filename has multiple extensions")

    return {
        'valid': len(issues) == 0,
        'issues': issues,
        'warnings': warnings,
        'sanitized_filename': sanitized,
    }

#!/usr/bin/env python3
"""
System Health Check Script for Plant Doctor.

This script verifies that all infrastructure components are properly
configured and accessible.

Usage:
    python scripts/doctor.py

Exit codes:
    0: All checks passed
    1: One or more checks failed
"""

import os
import sys


# ANSI color codes for terminal output
class Colors:
    GREEN = "\033[92m"
    RED = "\033[91m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    BOLD = "\033[1m"
    RESET = "\033[0m"


def print_success(message: str) -> None:
    print(f"{Colors.GREEN}✓{Colors.RESET} {message}")


def print_error(message: str) -> None:
    print(f"{Colors.RED}✗{Colors.RESET} {message}")


def print_warning(message: str) -> None:
    print(f"{Colors.YELLOW}⚠{Colors.RESET} {message}")


def check_python_version() -> bool:
    """
    Check that Python is 3.10 or newer.

    Returns:
        bool: True if check passes
    """
    version = sys.version_info
    is_valid = version >= (3, 10)

    if is_valid:
        print_success(f"Python version: {version.major}.{version.minor}.{version.micro}")
    else:
        print_error(
            f"Python version: {version.major}.{version.minor}.{version.micro} (expected >= 3.10)"
        )

    return is_valid


def check_project_structure() -> bool:
    """
    Check if required project directories exist.

    Returns:
        bool: True if all directories exist
    """
    required_dirs = [
        "plant_doctor",
        "plant_doctor/api",
        "plant_doctor/core",
        "plant_doctor/data",
        "plant_doctor/models",
        "plant_doctor/services",
        "plant_doctor/worker",
        "scripts",
    ]

    all_exist = True
    for dir_path in required_dirs:
        if os.path.isdir(dir_path):
            print_success(f"Directory exists: {dir_path}/")
        else:
            print_error(f"Directory missing: {dir_path}/")
            all_exist = False

    return all_exist


def check_config_file() -> bool:
    """
    Check if .env file exists and .env.example is present.

    Returns:
        bool: True if config is properly set up
    """
    env_example_exists = os.path.exists(".env.example")

    if os.path.exists(".env"):
        print_success(".env file exists")
    else:
        print_warning(".env file not found (copy from .env.example)")

    if env_example_exists:
        print_success(".env.example exists")
    else:
        print_error(".env.example missing")

    return env_example_exists


def check_taxonomy() -> bool:
    """Check that the taxonomy file loads and validates."""
    try:
        from plant_doctor.services.taxonomy_service import get_taxonomy_service

        taxonomy = get_taxonomy_service()
        print_success(
            f"Taxonomy v{taxonomy.metadata.version} loaded "
            f"({len(taxonomy.get_all())} entries)"
        )
        return True
    except Exception as e:
        print_error(f"Taxonomy failed to load: {e}")
        return False


def check_postgresql() -> bool:
    """
    Check the database connection.

    Returns:
        bool: True if connection succeeds
    """
    try:
        from sqlalchemy import text

        from plant_doctor.core.database import get_engine

        engine = get_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))

        print_success(f"Database connection OK ({engine.url.render_as_string(hide_password=True)})")
        return True

    except ImportError as e:
        print_warning(f"Database driver not installed: {e}")
        return False
    except Exception as e:
        print_error(f"Database connection failed: {e}")
        return False


def check_redis() -> bool:
    """
    Check Redis connection using ping.

    Returns:
        bool: True if connection succeeds
    """
    try:
        import redis

        from plant_doctor.core.config import get_settings

        settings = get_settings()
        client = redis.Redis.from_url(settings.redis_url, socket_connect_timeout=5)
        client.ping()

        print_success(f"Redis connection OK ({settings.redis_url})")
        return True

    except ImportError:
        print_warning("Redis library not installed")
        return False
    except Exception as e:
        print_error(f"Redis connection failed: {e}")
        return False


def check_minio() -> bool:
    """Check that MinIO is reachable with the configured credentials."""
    try:
        from minio import Minio

        from plant_doctor.core.config import get_settings

        settings = get_settings()
        client = Minio(
            settings.minio_endpoint,
            access_key=settings.minio_access_key,
            secret_key=settings.minio_secret_key,
            secure=settings.minio_secure,
        )
        if client.bucket_exists(settings.minio_bucket_name):
            print_success(f"MinIO connection OK (bucket '{settings.minio_bucket_name}')")
        else:
            print_warning(
                f"MinIO reachable, bucket '{settings.minio_bucket_name}' will be created on first upload"
            )
        return True

    except ImportError:
        print_warning("MinIO library not installed")
        return False
    except Exception as e:
        print_error(f"MinIO connection failed: {e}")
        return False


def check_hugging_face_api() -> bool:
    """
    Check that a Hugging Face API key is configured.

    Returns:
        bool: True if the key is set
    """
    from plant_doctor.core.config import get_settings

    settings = get_settings()
    api_key = settings.hugging_face_api_key

    if not api_key or api_key.startswith("your-"):
        print_error("Hugging Face API key not configured (set HUGGING_FACE_API_KEY in .env)")
        return False

    if api_key.startswith("hf_"):
        print_success("Hugging Face API key format valid")
    else:
        print_warning("Hugging Face API key format may be invalid (expected 'hf_...')")
    return True


def main() -> int:
    """
    Run all health checks.

    Returns:
        int: Exit code (0 = success, 1 = failure)
    """
    print(f"\n{Colors.BOLD}Plant Doctor System Health Check{Colors.RESET}\n")
    print(f"{Colors.BLUE}Checking infrastructure components...{Colors.RESET}\n")

    results = [
        ("Python Version", check_python_version()),
        ("Project Structure", check_project_structure()),
        ("Config Files", check_config_file()),
        ("Taxonomy", check_taxonomy()),
        ("PostgreSQL", check_postgresql()),
        ("Redis", check_redis()),
        ("MinIO", check_minio()),
        ("Hugging Face API", check_hugging_face_api()),
    ]

    print(f"\n{Colors.BOLD}{'=' * 50}{Colors.RESET}")
    passed = sum(1 for _, result in results if result)
    total = len(results)

    if passed == total:
        print(
            f"{Colors.GREEN}{Colors.BOLD}✓ All systems operational! "
            f"({passed}/{total} checks passed){Colors.RESET}\n"
        )
        return 0

    print(
        f"{Colors.RED}{Colors.BOLD}✗ System has issues "
        f"({passed}/{total} checks passed, {total - passed} failed){Colors.RESET}\n"
    )
    print(f"{Colors.BOLD}Failed checks:{Colors.RESET}")
    for name, result in results:
        if not result:
            print(f"  {Colors.RED}✗{Colors.RESET} {name}")
    print()
    return 1


if __name__ == "__main__":
    sys.exit(main())

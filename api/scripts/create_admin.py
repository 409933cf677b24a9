#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Script to create or promote an admin account.

Usage: create_admin.py EMAIL NAME  (password read from ADMIN_PASSWORD or prompted)
"""

import sys
import os
import getpass
import logging

# Add the parent directory to the path so we can import from api
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.auth import AuthService
from services.mongodb import MongoDBService, PersistenceError
from services.users import UserService

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def main():
    if len(sys.argv) != 3:
        print(__doc__.strip())
        sys.exit(2)

    email, name = sys.argv[1], sys.argv[2]
    password = os.getenv('ADMIN_PASSWORD') or getpass.getpass("Admin password: ")

    mongodb_service = MongoDBService()
    try:
        admin = UserService(mongodb_service).ensure_admin(
            email,
            name,
            AuthService().hash_password(password)
        )
        logger.info(f"Admin account ready: {admin.email}")
    except (PersistenceError, ValueError) as e:
        logger.error(f"Failed to create admin: {e}")
        sys.exit(1)
    finally:
        mongodb_service.close_connection()


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
Face Enrollment System - Main Entry Point

Run this file to enroll, recognize, list or delete identities.
"""

import sys

from face_enroll.main import main

if __name__ == '__main__':
    sys.exit(main())

#!/usr/bin/env python3
"""Generate a self-signed certificate plus public/private key for local TLS use.
Usage: gen_cert.py --certificate cert.pem --private-key key.pem --public-key pub.pem \\
           --encoding pem|der [--subject-alt-names NAME ...]

Runs from a source checkout without installing the package.
"""
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from selfsigned_credentials.cli import main  # noqa: E402

if __name__ == '__main__':
    raise SystemExit(main())

#!/usr/bin/env python3
"""Command line front end: resolve options, generate credentials, write files.

Usage:
  selfsigned-credentials --certificate cert.pem --private-key key.pem \\
      --public-key pub.pem --encoding pem --subject-alt-names example.com

Options may also come from a YAML file passed with --config; command line
values win over file values:

log_level: INFO
certificate: "certs/cert.pem"
private_key: "certs/key.pem"
public_key: "certs/pub.pem"
encoding: pem
subject_alt_names: ["localhost", "127.0.0.1"]

Files are written one at a time (certificate, public key, private key). A
failure part-way leaves the files already written on disk.
"""
import argparse
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import yaml

from selfsigned_credentials.credentials import (
    Credentials,
    CredentialsError,
    Encoding,
    InputError,
    PersistenceError,
    generate_credentials,
)

LOG_FORMAT = '[%(asctime)s] %(levelname)s %(message)s'

logger = logging.getLogger('selfsigned-credentials')


class GeneratorConfig:
    def __init__(self, data: dict):
        self.log_level: str = str(data.get('log_level', 'INFO'))
        self.certificate: Optional[str] = self._text(data, 'certificate')
        self.private_key: Optional[str] = self._text(data, 'private_key')
        self.public_key: Optional[str] = self._text(data, 'public_key')
        self.encoding: Optional[str] = self._text(data, 'encoding')
        raw_names = data.get('subject_alt_names') or []
        if isinstance(raw_names, str):
            raw_names = [raw_names]
        if not isinstance(raw_names, list):
            raise InputError(f'Config subject_alt_names must be a string or a list, got {type(raw_names).__name__}')
        self.subject_alt_names: List[str] = [str(n) for n in raw_names]

    @staticmethod
    def _text(data: dict, key: str) -> Optional[str]:
        # open() would take an int as a file descriptor
        value = data.get(key)
        if value is not None and not isinstance(value, str):
            raise InputError(f'Config {key} must be a string, got {type(value).__name__} {value!r}')
        return value


@dataclass(frozen=True)
class GeneratorOptions:
    certificate: str
    private_key: str
    public_key: str
    encoding: Encoding
    subject_alt_names: List[str]
    log_level: str = 'INFO'


def load_config(path: Optional[str]) -> GeneratorConfig:
    if path is None:
        return GeneratorConfig({})
    try:
        with open(path, 'r') as f:
            raw = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise InputError(f'Config file not found: {path}') from None
    except (OSError, yaml.YAMLError) as e:
        raise InputError(f'Failed to load config {path}: {e}') from e
    if not isinstance(raw, dict):
        raise InputError(f'Config {path} must be a mapping, got {type(raw).__name__}')
    return GeneratorConfig(raw)


def configure_logging(level_name: str) -> None:
    level = getattr(logging, str(level_name).upper(), None)
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logger.setLevel(level)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='selfsigned-credentials',
        description='Generate a self-signed certificate and its key pair',
    )
    parser.add_argument('--certificate', help='certificate to generate')
    parser.add_argument('--encoding', help='encoding to use for certificate and keys (pem or der)')
    parser.add_argument('--private-key', dest='private_key', help='private key to generate')
    parser.add_argument('--public-key', dest='public_key', help='public key to generate')
    parser.add_argument('--subject-alt-names', dest='subject_alt_names', action='append',
                        help='subject alt name for the certificate (repeatable)')
    parser.add_argument('--config', help='optional YAML file with default values')
    parser.add_argument('--log-level', dest='log_level', help='DEBUG, INFO, WARNING, ...')
    return parser


def resolve_options(args: argparse.Namespace, cfg: GeneratorConfig) -> GeneratorOptions:
    """Merge command line over config and validate what generation depends on."""
    values = {}
    missing = []
    for field, flag in (('certificate', '--certificate'),
                        ('private_key', '--private-key'),
                        ('public_key', '--public-key'),
                        ('encoding', '--encoding')):
        value = getattr(args, field, None) or getattr(cfg, field)
        if not value:
            missing.append(flag)
        values[field] = value
    if missing:
        raise InputError(f'Missing required argument(s): {", ".join(missing)}')
    names = args.subject_alt_names if args.subject_alt_names is not None else cfg.subject_alt_names
    return GeneratorOptions(
        certificate=values['certificate'],
        private_key=values['private_key'],
        public_key=values['public_key'],
        encoding=Encoding.parse(values['encoding']),
        subject_alt_names=list(names),
        log_level=args.log_level or cfg.log_level,
    )


def _write_file(path: str, data: bytes) -> None:
    try:
        with open(path, 'wb') as f:
            f.write(data)
    except OSError as e:
        raise PersistenceError(f'Cannot write {path}: {e}') from e
    logger.info('Wrote %s (%d bytes)', path, len(data))


def write_credentials(credentials: Credentials, options: GeneratorOptions) -> None:
    _write_file(options.certificate, credentials.certificate)
    _write_file(options.public_key, credentials.public_key)
    _write_file(options.private_key, credentials.private_key)


def run(options: GeneratorOptions) -> Credentials:
    logger.debug('Generating %s credentials for %s', options.encoding.name, options.subject_alt_names)
    credentials = generate_credentials(options.subject_alt_names, options.encoding)
    write_credentials(credentials, options)
    return credentials


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        cfg = load_config(args.config)
        configure_logging(args.log_level or cfg.log_level)
        options = resolve_options(args, cfg)
        run(options)
    except CredentialsError as e:
        raise SystemExit(f'{e.stage} failed: {e}')
    return 0


if __name__ == '__main__':
    raise SystemExit(main())

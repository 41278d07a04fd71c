"""
Device License Server - operator command line
"""
import base64
import json
import secrets
import time
from pathlib import Path

import click
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from rich.console import Console

from .config.settings import Settings
from .services.authentication import compute_request_signature
from .services.encryptor import SCHEMES, SCHEME_HKDF, PayloadEncryptor, derive_key

console = Console()

secret_option = click.option(
    '--secret',
    envvar='HMAC_SECRET',
    required=True,
    help='Shared HMAC secret (defaults to $HMAC_SECRET)'
)
scheme_option = click.option(
    '--scheme',
    type=click.Choice(list(SCHEMES)),
    default=SCHEME_HKDF,
    show_default=True,
    help='Payload encryption scheme'
)


@click.group(context_settings=dict(help_option_names=['-h', '--help']))
def cli():
    """Device License Server tools"""
    pass


@cli.command('generate-keys')
@click.option('--out-dir', type=click.Path(file_okay=False), default='.', help='Where to write the PEM files')
@click.option('--key-size', type=int, default=2048, show_default=True, help='RSA modulus size')
@click.option('--force/--no-force', default=False, help='Overwrite existing key files')
def generate_keys(out_dir, key_size, force):
    """Generate the RSA signing key pair plus HMAC and admin secrets."""
    out_path = Path(out_dir)
    private_file = out_path / 'private_key.pem'
    public_file = out_path / 'public_key.pem'

    if not force and (private_file.exists() or public_file.exists()):
        raise click.ClickException(f"Key files already exist in {out_path}; use --force to replace them")

    out_path.mkdir(parents=True, exist_ok=True)
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    private_file.write_bytes(private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    ))
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo
    )
    public_file.write_bytes(public_pem)

    console.print(f"[green]Keys generated:[/green] {private_file} (keep secret), {public_file}")
    console.print("\n[cyan]Public key for client builds:[/cyan]")
    console.print(public_pem.decode('ascii'), markup=False, highlight=False, soft_wrap=True)
    console.print("[cyan]Add to the server .env:[/cyan]")
    console.print(f"HMAC_SECRET={secrets.token_hex(32)}", markup=False, highlight=False, soft_wrap=True)
    console.print(f"ADMIN_API_KEY={secrets.token_hex(32)}", markup=False, highlight=False, soft_wrap=True)


@cli.command('sign-request')
@click.argument('device_id')
@secret_option
@click.option('--timestamp', type=int, help='Epoch seconds (defaults to now)')
@click.option('--app-version', default='1.0', show_default=True)
@click.option('--url', default='http://localhost:8000/api/validate', show_default=True,
              help='Validation endpoint used in the curl example')
def sign_request(device_id, secret, timestamp, app_version, url):
    """Build a signed /api/validate request body for DEVICE_ID."""
    timestamp = timestamp if timestamp is not None else int(time.time())
    body = {
        "device_id": device_id,
        "timestamp": timestamp,
        "signature": compute_request_signature(secret, device_id, timestamp),
        "app_version": app_version
    }
    payload = json.dumps(body, indent=2)

    click.echo(payload)
    click.echo()
    click.echo(f"curl -X POST {url} \\\n  -H \"Content-Type: application/json\" \\\n  -d '{json.dumps(body)}'")


@cli.command('derive-key')
@secret_option
@scheme_option
def derive_key_command(secret, scheme):
    """Show the 32-byte payload key clients must use."""
    key = derive_key(secret, scheme)

    console.print(f"[cyan]Scheme:[/cyan] {scheme}")
    console.print(f"[cyan]Secret length:[/cyan] {len(secret)}")
    console.print(f"[cyan]Key (hex):[/cyan] {key.hex()}", soft_wrap=True)
    console.print(f"[cyan]Key (base64):[/cyan] {base64.b64encode(key).decode('ascii')}", soft_wrap=True)


@cli.command()
@click.argument('encrypted_data')
@secret_option
@scheme_option
@click.option('--nonce', help='Base64 nonce returned with the payload (hkdf scheme)')
def decrypt(encrypted_data, secret, scheme, nonce):
    """Decrypt an encryptedData value from a validation response."""
    encryptor = PayloadEncryptor(secret, scheme)
    try:
        plaintext = encryptor.decrypt(encrypted_data, nonce)
    except ValueError as e:
        raise click.ClickException(f"Decryption failed: {e}")

    try:
        console.print_json(plaintext.decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError):
        click.echo(plaintext)


@cli.command('init-db')
@click.option('--database-url', envvar='DATABASE_URL', help='SQLAlchemy URL (defaults to settings)')
@click.option('--seed/--no-seed', default=False, help='Insert sample licenses')
def init_db_command(database_url, seed):
    """Create the licenses table, optionally with sample data."""
    from .database import create_session_factory, init_db
    from .scripts.init_db import seed_licenses
    from .services.store import SqlAlchemyLicenseStore

    database_url = database_url or Settings().DATABASE_URL
    session_factory = create_session_factory(database_url)
    init_db(session_factory)
    console.print(f"[green]Database ready:[/green] {database_url}")

    if seed:
        created = seed_licenses(SqlAlchemyLicenseStore(session_factory))
        console.print(f"Seeded {len(created)} sample licenses")


@cli.command()
@click.option('--host', default='127.0.0.1', show_default=True)
@click.option('--port', type=int, default=8000, show_default=True, envvar='PORT')
@click.option('--reload/--no-reload', default=False, help='Auto-reload on code changes')
def serve(host, port, reload):
    """Run the HTTP server."""
    import uvicorn

    uvicorn.run('license_server.main:app', host=host, port=port, reload=reload)


def main():
    cli()


if __name__ == '__main__':
    main()

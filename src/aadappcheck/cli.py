"""CLI entry point for aadappcheck."""

import asyncio
import json
import logging
from pathlib import Path

import click
import httpx

from aadappcheck.auth import (
    TokenStore,
    build_authorization_url,
    check_state,
    create_state,
    decode_jwt_payload,
    exchange_code,
    parse_redirect_url,
)
from aadappcheck.client.graph import GraphClient
from aadappcheck.config import config
from aadappcheck.errors import AuthError, GraphClientError, NotLoggedInError
from aadappcheck.healthcheck import app_filter, run_healthcheck

RULE = "=" * 44
LOGIN_REQUIRED = "This command requires you to login.  Usage: aadappcheck login"

AUTHZ_VARIANTS = [
    ("BASIC:", {}),
    ("PROMPT CONSENT or RECONSENT (if permissions for the app have changed -> &prompt=consent)",
     {"prompt": "consent"}),
    ("PROMPT FOR ADMIN CONSENT or RECONSENT (if permissions for the app have changed) &prompt=admin_consent",
     {"prompt": "admin_consent"}),
    ("REQUIRE USER Authentication &prompt=login", {"prompt": "login"}),
    ("ONLY WORK ACCOUNTS PLEASE &msafed=0", {"msafed": "0"}),
    ("TELL AAD the UserName to pre-fill &login_hint=[username]", {"login_hint": "someuser"}),
    ("TELL AAD the domain of the user &domain_hint=[microsoft.com]", {"domain_hint": "microsoft.com"}),
]


def _inspect(obj) -> None:
    click.echo(json.dumps(obj, indent=2, ensure_ascii=False, default=str))


def _load_token(store: TokenStore):
    """Stored session token, or exit 1 with the login hint."""
    try:
        return store.load()
    except (NotLoggedInError, ValueError):
        click.secho(LOGIN_REQUIRED, fg="red")
        raise click.exceptions.Exit(1)


def _prompt_redirect(intro: str) -> dict[str, str]:
    click.secho("Please paste following URL into your browser:", fg="green")
    click.secho(RULE, fg="yellow")
    click.echo(intro)
    click.secho(RULE, fg="yellow")
    click.secho("If necessary login and consent to the application.  When you get a 404... Not Found....", fg="green")
    click.secho("Copy the URL from your browser and paste below.", fg="green")
    click.secho(RULE, fg="yellow")
    url = click.prompt("url")
    return parse_redirect_url(url)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log requests and responses to stderr.")
@click.option("--token-file", type=click.Path(path_type=Path), default=None, help="Token file (default: temp dir).")
@click.pass_context
def main(ctx: click.Context, verbose: bool, token_file: Path | None):
    """aadappcheck: inspect Azure AD applications and your consent to them."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    ctx.obj = TokenStore(token_file)


@main.command()
@click.pass_obj
def login(store: TokenStore):
    """Login to analyze your apps."""
    state = create_state()
    url = build_authorization_url(config.CLIENT_ID, config.REDIRECT_URI, state=state)
    try:
        query = _prompt_redirect(url)
        check_state(state, query.get("state"))
        token = exchange_code(query["code"], client_id=config.CLIENT_ID, redirect_uri=config.REDIRECT_URI)
    except AuthError as e:
        click.secho(f"{e}.  You are not logged in.", fg="red")
        raise click.exceptions.Exit(1)

    store.save(token)
    click.secho("Great success you are logged in", fg="green")


@main.command("loginDumpToken")
@click.option("-a", "--appId", "app_id", required=True, help="Your application or client Id.")
@click.option("-r", "--redirectUri", "redirect_uri", required=True, help="The redirect URI registered with your app.")
@click.option("-s", "--secret", default=None, help="Client secret, for web apps / confidential clients.")
@click.option("-R", "--resource", default=None, help="The resource your application would like to access.")
def login_dump_token(app_id: str, redirect_uri: str, secret: str | None, resource: str | None):
    """Login to your app and dump the resulting access token claims."""
    scopes = [f"{resource.rstrip('/')}/.default"] if resource else config.SCOPES
    url = build_authorization_url(app_id, redirect_uri, scopes=scopes)
    try:
        query = _prompt_redirect(url)
        token = exchange_code(
            query["code"], client_id=app_id, redirect_uri=redirect_uri, scopes=scopes, secret=secret
        )
        claims = decode_jwt_payload(token["access_token"])
    except AuthError as e:
        click.secho(str(e), fg="red")
        raise click.exceptions.Exit(1)
    except ValueError:
        click.secho("Error decoding your access token.", fg="red")
        raise click.exceptions.Exit(1)

    click.secho("Here is the content of your access token", fg="green")
    _inspect(claims)


@main.command()
@click.pass_obj
def logout(store: TokenStore):
    """Logout and delete tokens."""
    if store.clear():
        click.secho("Great success you are logged out.", fg="green")
    else:
        click.secho("You are not even logged in yet... slow your roll", fg="green")


@main.command()
@click.pass_obj
def dump(store: TokenStore):
    """Dump current state."""
    try:
        _inspect(store.load_raw())
    except (NotLoggedInError, ValueError):
        click.secho("Nothing to dump", fg="green")


@main.command()
@click.option("-a", "--appId", "app_id", required=True, help="Your application or client Id.")
@click.pass_obj
def export(store: TokenStore, app_id: str):
    """Export an application to JSON."""
    token = _load_token(store)

    async def _export():
        async with GraphClient.for_token(token) as graph:
            return await graph.call("GetApplications", {"$filter": app_filter(app_id)})

    try:
        result = asyncio.run(_export())
    except (GraphClientError, httpx.TransportError) as e:
        click.echo(str(e))
        click.secho("We were not able to find that app that you were looking for", fg="red")
        raise click.exceptions.Exit(1)

    _inspect(result.body.get("value", []) if isinstance(result.body, dict) else result.body)


@main.command()
@click.option("-a", "--appId", "app_id", required=True, help="Your application or client Id.")
@click.pass_obj
def healthcheck(store: TokenStore, app_id: str):
    """Overview of the app and your consent information relative to it."""
    token = _load_token(store)

    async def _check():
        async with GraphClient.for_token(token) as graph:
            return await run_healthcheck(graph, token, app_id)

    report = asyncio.run(_check())

    if "application" not in report.errors:
        if report.application is None:
            click.secho("Application object not found", fg="yellow")
        else:
            click.secho("Here is the application object", fg="green")
            _inspect(report.application)

    if report.user is not None:
        click.secho("We found you as well.", fg="green")

    if "service_principal" not in report.errors:
        if report.service_principal is None:
            click.secho("Service principal not found", fg="yellow")
        else:
            click.secho("Here is the service principal object", fg="green")
            _inspect(report.service_principal)

    for name, error in report.errors.items():
        click.secho(f"Could not fetch {name}: {error}", fg="yellow")

    if report.required_resources:
        click.secho("This app requires access to", fg="green")
        for sp in report.required_resources:
            click.echo(f"  {sp.get('displayName')} ({sp.get('appId')})")

    if report.is_company_admin is True:
        click.secho("You are a Company Administrator and can consent on behalf of all users", fg="green")
    elif report.is_company_admin is False:
        click.secho("You are not a Company Administrator", fg="yellow")

    if report.grants is not None:
        click.secho("Here are the oAuth2Permissions you granted this app", fg="green")
        _inspect(report.user_grants)
        click.secho(
            "Here are the oAuth2Permissions you or another admin consented to on behalf of all users",
            fg="green",
        )
        _inspect(report.admin_grants)


@main.command("authZUris")
@click.option("-a", "--appId", "app_id", default=None, help="Your application or client Id.")
@click.option("-r", "--redirectUri", "redirect_uri", default=None, help="The redirect URI registered with your app.")
def authz_uris(app_id: str | None, redirect_uri: str | None):
    """Write common authorization request URL variants to the console."""
    if not redirect_uri:
        redirect_uri = config.REDIRECT_URI
        click.secho("You did not supply a redirect URI.  The redirect URI of appcheck will be used instead.", fg="yellow")
    if not app_id:
        app_id = config.CLIENT_ID
        click.secho("You did not supply an app/client id.  The client id of appcheck will be used instead.", fg="yellow")

    click.echo("The following are useful variants of authorization requests for your application.")
    click.echo("Note: The state parameter which is recommended has been left out.")
    click.echo("")
    for title, extra in AUTHZ_VARIANTS:
        click.secho("=" * 50, fg="yellow")
        click.secho(title, fg="green")
        click.secho("=" * 50, fg="yellow")
        click.echo(build_authorization_url(app_id, redirect_uri, extra=extra))
        click.echo("")

"""Profile commands -- point querycache at a list endpoint.

A profile records the API base URL, the list resource name and any headers
to send. ``profile add`` can also pin the profile for the current project by
writing ``./querycache.json``.
"""

from __future__ import annotations

from typing import Optional

import typer

from querycache.output import error, format_response, info, print_data, success


profile_app = typer.Typer(no_args_is_help=True)


def _parse_headers(pairs: Optional[list[str]]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for pair in pairs or []:
        name, sep, value = pair.partition(":")
        if not sep or not name.strip():
            error(f"Header must look like 'Name: value', got: {pair}")
            raise typer.Exit(code=2)
        headers[name.strip()] = value.strip()
    return headers


@profile_app.command("add")
def profile_add(
    name: str = typer.Argument(help="Profile name."),
    base_url: str = typer.Option(..., "--base-url", help="API base URL."),
    resource: str = typer.Option("trades", "--resource", help="List resource name."),
    header: Optional[list[str]] = typer.Option(
        None, "--header", "-H", help="Extra header as 'Name: value' (repeatable)."
    ),
    timeout: int = typer.Option(30, "--timeout", min=1, help="Request timeout in seconds."),
    use: bool = typer.Option(
        False, "--use", help="Pin this profile in ./querycache.json."
    ),
) -> None:
    """Create or overwrite a profile.

    Example::

        querycache profile add journal --base-url http://localhost:5000/v1 --use
    """
    from querycache.config import pin_project_profile, profile_exists, save_profile
    from querycache.models import Profile, RequestConfig

    if profile_exists(name):
        info(f'Profile "{name}" already exists and will be overwritten.')

    profile = Profile(
        name=name,
        base_url=base_url,
        resource=resource,
        headers=_parse_headers(header),
        request=RequestConfig(timeout=timeout),
    )
    save_profile(profile)

    if use:
        pin_project_profile(name)
    success(f'Profile "{name}" saved.')


@profile_app.command("list")
def profile_list() -> None:
    """List profile names."""
    from querycache.config import list_profiles

    names = list_profiles()
    if not names:
        info("No profiles yet. Run: querycache profile add NAME --base-url URL")
        return
    for profile_name in names:
        print_data(profile_name)


@profile_app.command("show")
def profile_show(name: str = typer.Argument(help="Profile name.")) -> None:
    """Show a profile's settings."""
    from querycache.config import load_profile
    from querycache.exceptions import ConfigError

    try:
        profile = load_profile(name)
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    format_response(profile.model_dump(mode="json"))


@profile_app.command("remove")
def profile_remove(name: str = typer.Argument(help="Profile name.")) -> None:
    """Delete a profile."""
    from querycache.config import delete_profile
    from querycache.exceptions import ConfigError

    try:
        delete_profile(name)
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    success(f'Profile "{name}" removed.')

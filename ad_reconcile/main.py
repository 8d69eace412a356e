import sys
from pathlib import Path
from typing import Optional, Union

import typer
from pydantic import BaseModel
from rich.console import Console
from typing_extensions import Annotated

from ad_reconcile.config import Settings, load_settings
from ad_reconcile.groups import GroupReconciler
from ad_reconcile.models import (
    DesiredGroup,
    DesiredUser,
    ObjectKind,
    ResourceFile,
    StateFile,
)
from ad_reconcile.session import DirectorySession, DryRunSession, connect
from ad_reconcile.users import UserReconciler

#: The typer application object to use.
app = typer.Typer()
#: The rich console to use for output.
console_err = Console(file=sys.stderr)
console_out = Console(file=sys.stdout)

#: Default path to the configuration file.
DEFAULT_CONFIG = "/etc/ad-reconcile/config.json"


def open_session(settings: Settings, dry_run: bool) -> DirectorySession:
    """Connect to the directory, wrapped for dry runs if requested."""
    session = connect(settings.ldap)
    if dry_run:
        return DryRunSession(session)
    return session


def build_reconciler(
    kind: ObjectKind, settings: Settings, session: DirectorySession
) -> Union[UserReconciler, GroupReconciler]:
    if kind == ObjectKind.USER:
        return UserReconciler(session, settings.ldap.search_base, settings.ldap.upn_suffix)
    else:
        return GroupReconciler(session, settings.ldap.search_base)


def parse_spec(kind: ObjectKind, spec: dict) -> Union[DesiredUser, DesiredGroup]:
    if kind == ObjectKind.USER:
        return DesiredUser.model_validate(spec)
    else:
        return DesiredGroup.model_validate(spec)


def load_resource(resource_path: str) -> ResourceFile:
    if not Path(resource_path).exists():
        console_err.log(f"ERROR: Resource file {resource_path} does not exist.", style="red")
        raise typer.Exit(1)
    with open(resource_path, "rt") as f:
        return ResourceFile.model_validate_json(f.read())


def load_state(state_path: str) -> Optional[StateFile]:
    if not Path(state_path).exists():
        return None
    with open(state_path, "rt") as f:
        return StateFile.model_validate_json(f.read())


def write_state(state_path: str, kind: ObjectKind, resolved: Optional[BaseModel]):
    """Write the state file, with an empty identifier if ``resolved`` is ``None``."""
    if resolved is None:
        state = StateFile(kind=kind)
    else:
        spec = resolved.model_dump(mode="json", exclude={"id"})
        state = StateFile(kind=kind, id=resolved.id, spec=spec)  # type: ignore
    with open(state_path, "wt") as f:
        f.write(state.model_dump_json(indent=2))
    console_out.print_json(data=state.model_dump(mode="json"))


@app.command("apply")
def apply(
    resource_path: Annotated[str, typer.Option("--resource", help="path to resource file")],
    state_path: Annotated[str, typer.Option("--state", help="path to state file")],
    config_path: Annotated[
        str, typer.Option("--config", help="path to configuration file")
    ] = DEFAULT_CONFIG,
    dry_run: Annotated[bool, typer.Option(..., help="perform a dry run (no changes)")] = False,
):
    """create or update a directory object"""
    settings = load_settings(config_path)
    dry_run = dry_run or settings.dry_run
    resource = load_resource(resource_path)
    state = load_state(state_path)
    if state is not None and state.kind != resource.kind:
        console_err.log(
            f"ERROR: state file holds a {state.kind.value}, resource is a {resource.kind.value}",
            style="red",
        )
        raise typer.Exit(1)
    desired = parse_spec(resource.kind, resource.spec)
    reconciler = build_reconciler(resource.kind, settings, open_session(settings, dry_run))
    if state is None or not state.id:
        console_err.log(f"creating {resource.kind.value}, dry_run={dry_run}")
        resolved = reconciler.create(desired)  # type: ignore
    else:
        console_err.log(f"updating {resource.kind.value} {state.id}, dry_run={dry_run}")
        previous = parse_spec(state.kind, state.spec)
        resolved = reconciler.update(desired, previous)  # type: ignore
    if dry_run:
        console_err.log("  ... **dry run, not writing state**")
        return
    write_state(state_path, resource.kind, resolved)


@app.command("refresh")
def refresh(
    state_path: Annotated[str, typer.Option("--state", help="path to state file")],
    config_path: Annotated[
        str, typer.Option("--config", help="path to configuration file")
    ] = DEFAULT_CONFIG,
):
    """re-read a directory object to detect drift"""
    settings = load_settings(config_path)
    state = load_state(state_path)
    if state is None or not state.id:
        console_err.log(f"ERROR: no object recorded in {state_path}", style="red")
        raise typer.Exit(1)
    reconciler = build_reconciler(state.kind, settings, open_session(settings, False))
    resolved = reconciler.read(parse_spec(state.kind, state.spec))  # type: ignore
    if resolved is None:
        console_err.log(f"{state.kind.value} {state.id} no longer exists, clearing identity")
    write_state(state_path, state.kind, resolved)


@app.command("destroy")
def destroy(
    state_path: Annotated[str, typer.Option("--state", help="path to state file")],
    config_path: Annotated[
        str, typer.Option("--config", help="path to configuration file")
    ] = DEFAULT_CONFIG,
    dry_run: Annotated[bool, typer.Option(..., help="perform a dry run (no changes)")] = False,
):
    """delete a directory object"""
    settings = load_settings(config_path)
    dry_run = dry_run or settings.dry_run
    state = load_state(state_path)
    if state is None or not state.id:
        console_err.log(f"nothing to destroy in {state_path}")
        return
    reconciler = build_reconciler(state.kind, settings, open_session(settings, dry_run))
    reconciler.delete(parse_spec(state.kind, state.spec))  # type: ignore
    if not dry_run:
        Path(state_path).unlink()
    console_err.log("... done")


@app.command("show-config")
def show_config(
    config_path: Annotated[
        str, typer.Option("--config", help="path to configuration file")
    ] = DEFAULT_CONFIG,
):
    """dump the loaded configuration"""
    settings = load_settings(config_path)
    console_out.print_json(data=settings.model_dump(mode="json"))


if __name__ == "__main__":
    app()

"""Rendering the bundled project template into a directory tree.

The template set ships inside the package (``templates/project``). A variant
is an ordered list of `ScaffoldEntry` items describing what to emit and where;
the "standard" variant produces a self-contained project directory, the
"embedded" variant omits the project metadata files and writes straight into
an existing directory.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from importlib.resources import files
from importlib.resources.abc import Traversable
from pathlib import Path

from .constants import APP_NAME, PROJECT_NAME_TOKEN, TEMPLATE_MARKER
from .errors import CollisionError, ScaffoldError, ValidationError
from .models import is_valid_project_name

logger = logging.getLogger(APP_NAME)

STANDARD = "standard"
EMBEDDED = "embedded"


@dataclass(frozen=True)
class ScaffoldEntry:
    """One item of a scaffold.

    Attributes:
        path (str): Destination relative to the scaffold root. May contain
                    `{project_name}`.
        is_dir (bool): Whether the entry is a directory.
        template (str | None): Template file under `templates/project`.
        content (str | None): Literal file content when there is no template.
        render (bool): Substitute the project name into the template. Static
                       assets are copied byte-for-byte.
        embedded (bool): Whether the embedded variant emits this entry.
    """

    path: str
    is_dir: bool = False
    template: str | None = None
    content: str | None = None
    render: bool = True
    embedded: bool = True

    def destination(self, project_name: str) -> str:
        return self.path.format(project_name=project_name)


SCAFFOLD: list[ScaffoldEntry] = [
    ScaffoldEntry("README.md", template="README.md.tmpl"),
    ScaffoldEntry("project.properties", template="project.properties.tmpl", embedded=False),
    ScaffoldEntry("project.manifest", template="project.manifest.tmpl", embedded=False),
    ScaffoldEntry("requirements.txt", template="requirements.txt.tmpl", embedded=False),
    ScaffoldEntry(".gitignore", template="gitignore.tmpl", embedded=False),
    ScaffoldEntry("pigscripts", is_dir=True),
    ScaffoldEntry("pigscripts/{project_name}.pig", template="pigscripts/pigscript.pig.tmpl"),
    ScaffoldEntry("macros", is_dir=True),
    ScaffoldEntry("macros/.gitkeep", content=""),
    ScaffoldEntry("udfs", is_dir=True),
    ScaffoldEntry("udfs/python", is_dir=True),
    ScaffoldEntry("udfs/python/{project_name}.py", template="udfs/python/python_udf.py.tmpl"),
    ScaffoldEntry("udfs/jython", is_dir=True),
    ScaffoldEntry("udfs/jython/.gitkeep", content=""),
    ScaffoldEntry("udfs/java", is_dir=True),
    ScaffoldEntry("udfs/java/.gitkeep", content=""),
    ScaffoldEntry("luigiscripts", is_dir=True),
    ScaffoldEntry("luigiscripts/README", template="luigiscripts/README.tmpl"),
    ScaffoldEntry(
        "luigiscripts/{project_name}_luigi.py",
        template="luigiscripts/luigi_script.py.tmpl",
    ),
    ScaffoldEntry(
        "luigiscripts/client.cfg.template",
        template="luigiscripts/client.cfg.template.tmpl",
    ),
    ScaffoldEntry("sparkscripts", is_dir=True),
    ScaffoldEntry("sparkscripts/README", template="sparkscripts/README.tmpl"),
    ScaffoldEntry("sparkscripts/{project_name}_pi.py", template="sparkscripts/spark_pi.py.tmpl"),
    ScaffoldEntry("lib", is_dir=True),
    ScaffoldEntry("lib/README", template="lib/README", render=False),
    ScaffoldEntry("params", is_dir=True),
    ScaffoldEntry("params/README", template="params/README", render=False),
]
"""list[ScaffoldEntry]: The versioned template set, in creation order."""


def template_root() -> Traversable:
    return files("mortar_projects") / "templates" / "project"


def entries_for(variant: str) -> list[ScaffoldEntry]:
    """Returns the ordered entries a variant emits.

    Raises:
        ValueError: If the variant is unknown.
    """
    if variant == STANDARD:
        return list(SCAFFOLD)
    if variant == EMBEDDED:
        return [e for e in SCAFFOLD if e.embedded]
    raise ValueError(f"Unknown scaffold variant '{variant}'")


def render(text: str, project_name: str) -> str:
    return PROJECT_NAME_TOKEN.sub(project_name, text)


def find_markers(path: Path) -> list[tuple[int, str]]:
    """Scans a file line by line for template markers.

    Returns:
        list[tuple[int, str]]: (line number, line) for each offending line. Files
                               that are not UTF-8 text have none.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        return []
    return [
        (number, line)
        for number, line in enumerate(text.splitlines(), start=1)
        if TEMPLATE_MARKER.search(line)
    ]


class ScaffoldGenerator:
    """Materialises a scaffold variant for a project name.

    Attributes:
        variant (str): 'standard' or 'embedded'.
        templates (Traversable): Where template files are read from.
        on_create (Callable[[str], None] | None): Called with each relative path
                                                  as it is created.
    """

    def __init__(
        self,
        variant: str = STANDARD,
        templates: Traversable | None = None,
        on_create: Callable[[str], None] | None = None,
    ):
        self.entries = entries_for(variant)
        self.variant = variant
        self.templates = templates or template_root()
        self.on_create = on_create

    def root_for(self, base: Path, project_name: str) -> Path:
        """The directory the scaffold is written into."""
        return base / project_name if self.variant == STANDARD else base

    def check_targets(self, base: Path, project_name: str) -> None:
        """Verifies nothing the scaffold would create already exists.

        Standard scaffolds need the whole project directory to be absent;
        embedded scaffolds only need each individual file to be absent.

        Raises:
            ValidationError: If the project name is not legal.
            CollisionError: If a target already exists.
        """
        if not is_valid_project_name(project_name):
            raise ValidationError(
                f"Invalid project name: {project_name}. "
                "Use only letters, numbers and underscores."
            )
        root = self.root_for(base, project_name)
        if self.variant == STANDARD:
            if root.exists():
                raise CollisionError(
                    f"Can't create project: {project_name} since a directory "
                    "with that name already exists.",
                    resource=str(root),
                )
            return

        for entry in self.entries:
            target = root / entry.destination(project_name)
            if not entry.is_dir and target.exists():
                raise CollisionError(
                    f"Can't create embedded project: {target} already exists.",
                    resource=str(target),
                )
            if entry.is_dir and target.exists() and not target.is_dir():
                raise CollisionError(
                    f"Can't create embedded project: {target} exists and is not "
                    "a directory.",
                    resource=str(target),
                )

    def _content(self, entry: ScaffoldEntry, project_name: str) -> bytes:
        if entry.template is None:
            return (entry.content or "").encode("utf-8")
        source = self.templates / entry.template
        if not entry.render:
            return source.read_bytes()
        return render(source.read_text(encoding="utf-8"), project_name).encode("utf-8")

    def generate(self, base: Path, project_name: str) -> list[Path]:
        """Writes the scaffold under `base`.

        Args:
            base (Path): The current directory.
            project_name (str): The name substituted into every template.

        Returns:
            list[Path]: Every path created, in creation order.

        Raises:
            ValidationError | CollisionError: From the pre-write checks.
            ScaffoldError: If a write fails or a rendered file still contains a
                           template marker. Carries the paths already written.
        """
        self.check_targets(base, project_name)
        root = self.root_for(base, project_name)
        written: list[Path] = []

        try:
            if self.variant == STANDARD:
                root.mkdir(parents=True)
                written.append(root)
                self._announce("")

            for entry in self.entries:
                relative = entry.destination(project_name)
                target = root / relative
                if entry.is_dir:
                    if target.is_dir():
                        continue
                    target.mkdir()
                else:
                    target.write_bytes(self._content(entry, project_name))
                written.append(target)
                self._announce(relative)
        except OSError as e:
            logger.error(f"Scaffold write failed for {project_name}: {e}")
            raise ScaffoldError(
                f"Failed to generate project {project_name}: {e}", written
            ) from e

        for path in written:
            if not path.is_file():
                continue
            if markers := find_markers(path):
                number, line = markers[0]
                raise ScaffoldError(
                    f"Unresolved template marker in {path} line {number}: "
                    f"{line.strip()}",
                    written,
                )

        logger.info(f"Generated {len(written)} scaffold paths for {project_name}")
        return written

    def _announce(self, relative: str) -> None:
        logger.debug(f"create {relative}")
        if self.on_create:
            self.on_create(relative)

"""``docker pull`` references for listed images."""


def pull_reference(registry_host: str, project: str, image: str, tag: str = "") -> str:
    """Build ``host/[project/]image:tag`` for an image.

    The host loses its scheme and trailing slash; the project is only
    prefixed when the image is not already qualified with it; the tag
    defaults to ``latest``.

    Examples:
        >>> pull_reference("https://registry.example.com", "team", "service", "v1")
        'registry.example.com/team/service:v1'
        >>> pull_reference("", "", "library/nginx", "alpine")
        'library/nginx:alpine'
    """
    host = registry_host.strip()
    for scheme in ("https://", "http://"):
        if host.startswith(scheme):
            host = host[len(scheme):]
    host = host.rstrip("/")

    image = image.strip().strip("/")
    project = project.strip().strip("/")
    if project and not image.startswith(f"{project}/"):
        image = f"{project}/{image}"

    reference = f"{image}:{tag.strip() or 'latest'}"
    if host:
        reference = f"{host}/{reference}"
    return reference


def pull_command(registry_host: str, project: str, image: str, tag: str = "") -> str:
    """Shell command pulling the image."""
    return f"docker pull {pull_reference(registry_host, project, image, tag)}"

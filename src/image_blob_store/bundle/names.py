"""Image name handling for docker save bundles."""

from ..core.types import RepositoryIndex
from ..exceptions import MetadataMalformed


def is_registry_host(segment: str) -> bool:
    """Check if a reference segment looks like a registry host.

    A dot marks a domain (``registry.example.com``), a colon marks a port
    (``localhost:5000``). Either one alone is enough.
    """
    return "." in segment or ":" in segment


def normalize_image_name(reference: str) -> str:
    """레지스트리 호스트/포트 접두사를 제거한 정규 이미지 이름을 반환합니다.

    첫 번째 '/' 앞 부분에 '.' 또는 ':'가 있으면 레지스트리 호스트로 간주하고
    그 뒤의 나머지를 반환합니다. 그렇지 않으면 입력을 그대로 반환합니다.

    Args:
        reference: 이미지 참조 문자열
            - 예: "nginx", "team/app"
            - 레지스트리 포함: "registry.example.com:5000/team/app"

    Returns:
        str: 정규화된 이미지 이름

    Examples:
        # 레지스트리 호스트 제거
        normalize_image_name("registry.example.com:5000/team/app")
        # 결과: "team/app"

        # 포트만 있는 호스트
        normalize_image_name("localhost:5000/app")
        # 결과: "app"

        # 호스트 없는 이름은 그대로
        normalize_image_name("team/app")
        # 결과: "team/app"
    """
    head, sep, rest = reference.partition("/")
    if not sep:
        return reference

    if is_registry_host(head):
        return rest

    return reference


def first_reference(index: RepositoryIndex) -> tuple[str, str]:
    """Return the first image reference of a repositories index and its tag.

    Args:
        index: Parsed ``repositories`` file (``{"repo": {"tag": "id"}}``)

    Returns:
        (reference, tag) tuple; tag defaults to "latest" when none is listed

    Raises:
        MetadataMalformed: If the index is empty
    """
    if not index:
        raise MetadataMalformed("repositories index is empty")

    reference = next(iter(index))
    tags = index[reference]
    tag = next(iter(tags), "latest") if isinstance(tags, dict) else "latest"
    return reference, tag

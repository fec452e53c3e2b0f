"""Composer repository endpoints.

Serves the documents built by the metadata dumper for the requesting
identity. Every response carries the document hash as its ``ETag``; a
request whose ``If-None-Match`` lists that hash gets an empty 304
instead of the body. ``If-Modified-Since`` is ignored: grant changes
alter a document without moving its timestamp.
"""

from email.utils import format_datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from composer_mirror.common.logger import get_logger
from composer_mirror.metadata.document import MetadataDocument
from composer_mirror.packages.base import Identity
from composer_mirror.packages.dumper import MetadataDumper
from mirror_server.api.deps import get_current_identity, get_dumper

router = APIRouter(tags=["metadata"])
logger = get_logger("metadata_api")


def etag(document: MetadataDocument) -> Optional[str]:
    digest = document.hash()
    return f'"{digest}"' if digest else None


def _client_is_fresh(request: Request, document: MetadataDocument) -> bool:
    header = request.headers.get("if-none-match")
    tag = etag(document)
    if not header or tag is None:
        return False
    if header.strip() == "*":
        return True
    candidates = {value.strip().removeprefix("W/") for value in header.split(",")}
    return tag in candidates


def conditional(request: Request, document: MetadataDocument) -> MetadataDocument:
    """Swap a document for the not-modified sentinel when the client copy is current."""
    if _client_is_fresh(request, document):
        return MetadataDocument.create_not_modified(document.timestamp)
    return document


def to_response(document: MetadataDocument, ttl: Optional[int] = None, tag: Optional[str] = None) -> Response:
    headers = {"Last-Modified": format_datetime(document.last_modified(), usegmt=True)}
    if tag:
        headers["ETag"] = tag
    if ttl is not None:
        headers["Cache-Control"] = f"max-age={ttl}"

    if document.is_not_modified():
        return Response(status_code=status.HTTP_304_NOT_MODIFIED, headers=headers)

    return Response(
        content=document.get_content(),
        media_type="application/json",
        headers=headers,
    )


def _serve(request: Request, document: MetadataDocument) -> Response:
    return to_response(conditional(request, document), document.get_options().ttl, etag(document))


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")


@router.get("/packages.json")
def root_index(
    request: Request,
    dumper: MetadataDumper = Depends(get_dumper),
    identity: Optional[Identity] = Depends(get_current_identity),
):
    """Root index listing the provider manifest and URL templates."""
    return _serve(request, dumper.dump(identity).root)


@router.get("/p/providers${digest}.json")
def provider_manifest(
    digest: str,
    request: Request,
    dumper: MetadataDumper = Depends(get_dumper),
    identity: Optional[Identity] = Depends(get_current_identity),
):
    """Provider manifest mapping package names to file hashes."""
    document = dumper.dump(identity).providers
    if document.hash() != digest:
        raise _not_found()
    return _serve(request, document)


@router.get("/p/{vendor}/{package}${digest}.json")
def provider_package(
    vendor: str,
    package: str,
    digest: str,
    request: Request,
    dumper: MetadataDumper = Depends(get_dumper),
    identity: Optional[Identity] = Depends(get_current_identity),
):
    """Hash-addressed v1 package file."""
    document = dumper.dump_package_document(identity, f"{vendor}/{package}")
    if document is None or document.hash() != digest:
        raise _not_found()
    return _serve(request, document)


@router.get("/p2/{vendor}/{package}.json")
def package_metadata(
    vendor: str,
    package: str,
    request: Request,
    dumper: MetadataDumper = Depends(get_dumper),
    identity: Optional[Identity] = Depends(get_current_identity),
):
    """v2 metadata file of one package."""
    name = f"{vendor}/{package}"
    document = dumper.dump_package_document(identity, name)
    if document is None:
        logger.debug(f"No visible metadata for {name}")
        raise _not_found()
    return _serve(request, document)

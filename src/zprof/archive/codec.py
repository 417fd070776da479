"""gzip-compressed tar archives with permission and symlink handling."""

import logging
import os
import stat
import tarfile
import tempfile
from pathlib import Path, PurePosixPath
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel

from ..domain.errors import ArchiveError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]
Entry = Tuple[Path, str]  # (filesystem path, archive name)


class ArchiveMember(BaseModel):
    name: str
    size: int = 0
    mode: int = 0o644
    is_dir: bool = False
    is_symlink: bool = False
    linkname: Optional[str] = None


class ArchiveCodec:
    """builds and reads .tar.gz archives.

    writes are staged in a temporary file and renamed into place only after the
    whole archive has been written, so a failed write never leaves a file at
    the output path.
    """

    def __init__(self, compression: str = "gz"):
        self.compression = compression

    def write_files(
        self,
        base_dir: Path,
        names: Sequence[str],
        output: Path,
        follow_symlinks: bool = False,
        mode: int = 0o600,
        on_progress: Optional[ProgressCallback] = None,
        staging_dir: Optional[Path] = None,
    ) -> int:
        """
        archive individual paths relative to base_dir.

        args:
            base_dir: directory the names are relative to (member names keep this relative form)
            names: relative paths to archive, in order
            output: final archive path
            follow_symlinks: if False, symlinks are stored as links
            mode: permission bits of the archive file
            on_progress: called with (done_bytes, total_bytes) after each entry
            staging_dir: where the partial archive is written (defaults to output's directory)

        returns:
            size of the written archive in bytes

        raises:
            ArchiveError: if any entry cannot be read or the archive cannot be written
        """
        entries = [(Path(base_dir) / name, name) for name in names]
        return self._write(entries, Path(output), follow_symlinks, mode, on_progress, staging_dir)

    def write_tree(
        self,
        source_dir: Path,
        output: Path,
        arcname: Optional[str] = None,
        follow_symlinks: bool = True,
        mode: int = 0o600,
        on_progress: Optional[ProgressCallback] = None,
        staging_dir: Optional[Path] = None,
    ) -> int:
        """archive a whole directory tree rooted at arcname (defaults to the directory name)."""
        source_dir = Path(source_dir)
        try:
            entries = self._walk_tree(source_dir, arcname or source_dir.name, follow_symlinks)
        except OSError as e:
            raise ArchiveError("scan", source_dir, e) from e
        return self._write(entries, Path(output), follow_symlinks, mode, on_progress, staging_dir)

    def list_members(self, archive: Path) -> List[ArchiveMember]:
        try:
            with tarfile.open(archive, "r:*") as tar:
                return [self._to_member(info) for info in tar.getmembers()]
        except (OSError, tarfile.TarError) as e:
            raise ArchiveError("read", archive, e) from e

    def read_member(self, archive: Path, name: str) -> bytes:
        """return the content of a regular-file member."""
        try:
            with tarfile.open(archive, "r:*") as tar:
                info = tar.getmember(name)
                if not info.isfile():
                    raise ValueError(f"'{name}' is not a regular file")
                f = tar.extractfile(info)
                return f.read()
        except (OSError, tarfile.TarError, KeyError, ValueError) as e:
            raise ArchiveError(f"read member '{name}' from", archive, e) from e

    def extract_member(self, archive: Path, name: str, dest: Path, mode: Optional[int] = None) -> None:
        """
        extract one member to dest, replacing whatever is there.

        regular files are written to a temporary file beside dest and renamed
        over it; symlink members are recreated as links.
        """
        self._check_name(name, archive)
        try:
            with tarfile.open(archive, "r:*") as tar:
                info = tar.getmember(name)
                self._extract_info(tar, info, Path(dest), mode)
        except (OSError, tarfile.TarError, KeyError) as e:
            raise ArchiveError(f"extract '{name}' from", archive, e) from e

    def extract_all(self, archive: Path, dest_dir: Path) -> List[Path]:
        """extract every member under dest_dir; returns the extracted paths."""
        dest_dir = Path(dest_dir)
        extracted = []
        try:
            with tarfile.open(archive, "r:*") as tar:
                for info in tar.getmembers():
                    self._check_name(info.name, archive)
                    target = dest_dir / info.name
                    self._extract_info(tar, info, target, None)
                    extracted.append(target)
        except (OSError, tarfile.TarError) as e:
            raise ArchiveError("extract", archive, e) from e
        return extracted

    def _write(
        self,
        entries: List[Entry],
        output: Path,
        follow_symlinks: bool,
        mode: int,
        on_progress: Optional[ProgressCallback],
        staging_dir: Optional[Path],
    ) -> int:
        staging = Path(staging_dir) if staging_dir else output.parent
        try:
            staging.mkdir(parents=True, exist_ok=True)
            total = self._total_size(entries, follow_symlinks)
        except OSError as e:
            raise ArchiveError("prepare", output, e) from e

        fd, tmp_name = tempfile.mkstemp(prefix=f".{output.name}.", suffix=".partial", dir=staging)
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as raw:
                os.chmod(tmp_path, mode)
                with tarfile.open(
                    fileobj=raw,
                    mode=f"w:{self.compression}",
                    dereference=follow_symlinks,
                ) as tar:
                    done = 0
                    for path, arcname in entries:
                        done += self._add(tar, path, arcname)
                        if on_progress:
                            on_progress(done, total)
            output.parent.mkdir(parents=True, exist_ok=True)
            os.replace(tmp_path, output)
        except BaseException as e:
            self._discard(tmp_path)
            if isinstance(e, (OSError, tarfile.TarError)):
                raise ArchiveError("write archive", output, e) from e
            raise

        size = output.stat().st_size
        logger.debug("wrote %s (%d entries, %d bytes)", output, len(entries), size)
        return size

    def _add(self, tar: tarfile.TarFile, path: Path, arcname: str) -> int:
        # gettarinfo honors tar.dereference: links are either stored or followed
        info = tar.gettarinfo(name=str(path), arcname=arcname)
        if info is None:
            logger.warning("skipping unsupported file type: %s", path)
            return 0
        if info.isfile():
            with open(path, "rb") as f:
                tar.addfile(info, f)
            return info.size
        tar.addfile(info)
        return 0

    def _walk_tree(self, source_dir: Path, arcname: str, follow_symlinks: bool) -> List[Entry]:
        if not source_dir.is_dir():
            raise NotADirectoryError(f"{source_dir} is not a directory")

        entries: List[Entry] = [(source_dir, arcname)]

        def visit(directory: Path, prefix: str, ancestors: frozenset) -> None:
            for child in sorted(directory.iterdir(), key=lambda p: p.name):
                child_arc = f"{prefix}/{child.name}"
                if child.is_symlink() and not follow_symlinks:
                    entries.append((child, child_arc))
                    continue
                if child.is_dir():
                    real = os.path.realpath(child)
                    if real in ancestors:
                        logger.warning("skipping symlink cycle at %s", child)
                        continue
                    entries.append((child, child_arc))
                    visit(child, child_arc, ancestors | {real})
                else:
                    entries.append((child, child_arc))

        visit(source_dir, arcname, frozenset({os.path.realpath(source_dir)}))
        return entries

    def _total_size(self, entries: List[Entry], follow_symlinks: bool) -> int:
        total = 0
        for path, _ in entries:
            st = os.stat(path) if follow_symlinks else os.lstat(path)
            if stat.S_ISREG(st.st_mode):
                total += st.st_size
        return total

    def _extract_info(self, tar: tarfile.TarFile, info: tarfile.TarInfo, dest: Path, mode: Optional[int]) -> None:
        dest.parent.mkdir(parents=True, exist_ok=True)
        if info.isdir():
            dest.mkdir(parents=True, exist_ok=True)
            os.chmod(dest, info.mode | stat.S_IRWXU)
            return

        if info.issym():
            if os.path.lexists(dest) and not dest.is_dir():
                dest.unlink()
            os.symlink(info.linkname, dest)
            return

        if not info.isfile():
            logger.warning("skipping unsupported member: %s", info.name)
            return

        source = tar.extractfile(info)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{dest.name}.", suffix=".partial", dir=dest.parent)
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as out:
                while True:
                    chunk = source.read(8192)
                    if not chunk:
                        break
                    out.write(chunk)
            os.chmod(tmp_path, stat.S_IMODE(mode if mode is not None else info.mode))
            os.replace(tmp_path, dest)
        except BaseException:
            self._discard(tmp_path)
            raise

    def _to_member(self, info: tarfile.TarInfo) -> ArchiveMember:
        return ArchiveMember(
            name=info.name,
            size=info.size,
            mode=info.mode,
            is_dir=info.isdir(),
            is_symlink=info.issym(),
            linkname=info.linkname if info.issym() else None,
        )

    def _check_name(self, name: str, archive: Path) -> None:
        member = PurePosixPath(name)
        if member.is_absolute() or ".." in member.parts:
            raise ArchiveError("extract", archive, ValueError(f"unsafe member name '{name}'"))

    @staticmethod
    def _discard(path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            pass


def member_index(members: List[ArchiveMember]) -> Dict[str, ArchiveMember]:
    return {m.name: m for m in members}

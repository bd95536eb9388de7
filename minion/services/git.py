"""Git service for repository preparation, patch application and push."""

import logging
import re
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

REMOTE_PREFIXES = ("http://", "https://", "git@", "ssh://", "git://", "file://")

_DIFF_HEADER = re.compile(r"^diff --git a/(.+?) b/(.+)$", re.MULTILINE)


class GitError(Exception):
    """Raised when git operations fail."""

    pass


@dataclass
class PreparedRepo:
    """Repository location to mount into the sandbox."""

    repo_path: str
    needs_cleanup: bool


@dataclass
class PatchResult:
    """Outcome of applying a patch set."""

    success: bool
    commits: int
    files_changed: int = 0
    error: str | None = None


class GitService:
    """Service for git-related operations."""

    @staticmethod
    def run_git(
        *args: str, cwd: str | Path | None = None, timeout: int = 60
    ) -> subprocess.CompletedProcess[str]:
        """Run a git command, raising GitError on a non-zero exit code."""
        logger.debug(f"git {' '.join(args)} (cwd={cwd})")
        try:
            return subprocess.run(
                ["git", *args],
                cwd=cwd,
                capture_output=True,
                text=True,
                check=True,
                timeout=timeout,
            )
        except subprocess.CalledProcessError as e:
            detail = (e.stderr or e.stdout or "").strip()
            raise GitError(
                f"`git {' '.join(args)}` failed (rc={e.returncode}): {detail}"
            ) from e
        except subprocess.TimeoutExpired as e:
            raise GitError(f"`git {' '.join(args)}` timed out after {timeout}s") from e

    @staticmethod
    def is_remote(repo: str) -> bool:
        """Classify a repository locator as a remote URL by its shape.

        Handles:
        - https://host/org/repo.git, http://...
        - git@host:org/repo.git
        - ssh://, git:// and file:// URLs
        """
        return repo.startswith(REMOTE_PREFIXES)

    @staticmethod
    def resolve_repo(repo: str) -> tuple[str, str]:
        """Return (locator, repo_type), making local paths absolute."""
        if GitService.is_remote(repo):
            return repo, "remote"
        return str(Path(repo).expanduser().resolve()), "local"

    @staticmethod
    def prepare_repo(repo_type: str, repo: str, run_dir: str | Path) -> PreparedRepo:
        """Prepare the repository that will be mounted read-only.

        Local repositories are referenced in place. Remote repositories are
        cloned into ``<run_dir>/repo`` using the host's git credentials and
        flagged for cleanup after a successful push.
        """
        if repo_type == "local":
            return PreparedRepo(repo_path=repo, needs_cleanup=False)

        clone_path = Path(run_dir) / "repo"
        logger.info(f"Cloning {repo} into {clone_path}")
        GitService.run_git("clone", repo, str(clone_path), timeout=300)
        return PreparedRepo(repo_path=str(clone_path), needs_cleanup=True)

    @staticmethod
    def cleanup_repo(repo_path: str | Path) -> None:
        """Delete a temporary clone. Best effort."""
        try:
            shutil.rmtree(repo_path)
            logger.info(f"Removed temporary clone {repo_path}")
        except OSError as e:
            logger.warning(f"Failed to remove {repo_path}: {e}")

    @staticmethod
    def list_patches(patch_dir: str | Path) -> list[Path]:
        """Return the .patch files of a patch directory in commit order."""
        patch_dir = Path(patch_dir)
        if not patch_dir.is_dir():
            return []
        return sorted(p for p in patch_dir.iterdir() if p.name.endswith(".patch"))

    @staticmethod
    def count_changed_files(patches: list[Path]) -> int:
        """Count the distinct paths touched across a patch set."""
        paths: set[str] = set()
        for patch in patches:
            for old_path, new_path in _DIFF_HEADER.findall(patch.read_text(errors="replace")):
                paths.add(new_path if new_path != "/dev/null" else old_path)
        return len(paths)

    @staticmethod
    def apply_patches(repo_path: str | Path, patch_dir: str | Path) -> PatchResult:
        """Apply a patch set with ``git am``, preserving authorship and messages.

        Zero patches is a successful no-op. On failure the partial
        application is aborted, leaving the repository in its pre-apply
        state, and the git error is reported.
        """
        patches = GitService.list_patches(patch_dir)
        if not patches:
            return PatchResult(success=True, commits=0)

        files_changed = GitService.count_changed_files(patches)
        try:
            GitService.run_git("am", *[str(p) for p in patches], cwd=repo_path)
        except GitError as e:
            logger.error(f"Patch apply failed in {repo_path}: {e}")
            try:
                GitService.run_git("am", "--abort", cwd=repo_path)
            except GitError as abort_error:
                logger.warning(f"git am --abort failed: {abort_error}")
            return PatchResult(success=False, commits=0, error=str(e))

        logger.info(f"Applied {len(patches)} patch(es) to {repo_path}")
        return PatchResult(success=True, commits=len(patches), files_changed=files_changed)

    @staticmethod
    def branch_exists(repo_path: str | Path, branch: str) -> bool:
        try:
            GitService.run_git(
                "rev-parse", "--verify", "--quiet", f"refs/heads/{branch}", cwd=repo_path
            )
        except GitError:
            return False
        return True

    @staticmethod
    def create_branch(repo_path: str | Path, branch: str) -> None:
        """Create branch at the current HEAD and check it out.

        Raises:
            GitError: If the branch already exists
        """
        GitService.run_git("checkout", "-b", branch, cwd=repo_path)

    @staticmethod
    def current_ref(repo_path: str | Path) -> str:
        """Return the checked out branch name, or the commit sha when detached."""
        ref = GitService.run_git(
            "rev-parse", "--abbrev-ref", "HEAD", cwd=repo_path
        ).stdout.strip()
        if ref == "HEAD":
            ref = GitService.run_git("rev-parse", "HEAD", cwd=repo_path).stdout.strip()
        return ref

    @staticmethod
    def switch_to(repo_path: str | Path, ref: str) -> None:
        GitService.run_git("checkout", ref, cwd=repo_path)

    @staticmethod
    def delete_branch(repo_path: str | Path, branch: str) -> None:
        GitService.run_git("branch", "-D", branch, cwd=repo_path)

    @staticmethod
    def push_repo(repo_path: str | Path, branch: str) -> None:
        """Push branch to origin.

        Raises:
            GitError: If the push fails
        """
        logger.info(f"Pushing {branch} from {repo_path}")
        GitService.run_git("push", "origin", branch, cwd=repo_path, timeout=120)

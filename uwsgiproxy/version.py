import os
import subprocess

VERSION = "0.3.0"


def get_dev_version() -> str:
    """
    Return a detailed version string, sourced either from VERSION or obtained dynamically using git.
    """

    uwsgiproxy_version = VERSION

    here = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    try:
        git_describe = subprocess.check_output(
            ["git", "describe", "--tags", "--long"],
            stderr=subprocess.STDOUT,
            cwd=here,
        )
        last_tag, tag_dist_str, commit = git_describe.decode().strip().rsplit("-", 2)
        commit = commit.lstrip("g")[:7]
        tag_dist = int(tag_dist_str)
    except (OSError, subprocess.CalledProcessError, ValueError):
        pass
    else:
        # Add commit info for non-tagged releases
        if tag_dist > 0:
            uwsgiproxy_version += f" (+{tag_dist}, commit {commit})"

    return uwsgiproxy_version


if __name__ == "__main__":  # pragma: no cover
    print(VERSION)

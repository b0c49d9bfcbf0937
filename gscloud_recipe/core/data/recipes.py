"""
Built-in recipe registry.

Pure data, no logic. Each entry validates into a ``Recipe`` model
(see ``gscloud_recipe.core.config.loader.builtin_recipe``).
"""

from __future__ import annotations


BUILTIN_RECIPES: dict[str, dict] = {

    "gscloud": {
        "desc": "Official command-line interface for the gridscale API",
        "homepage": "https://gridscale.io/",
        "url": "https://github.com/gridscale/gscloud/archive/refs/tags/v0.12.0.tar.gz",
        "sha256": "20927acda1fff7372bd6de11dcd40b0b6143aa6668d88b79d181cd9ccf5440f4",
        "license": "MIT",
        "head": {
            "url": "https://github.com/gridscale/gscloud.git",
            "branch": "master",
        },
        "build": {
            "toolchain": "go",
            "ldflags": [
                "-s", "-w",
                "-X github.com/gridscale/gscloud/cmd.Version={version}",
            ],
        },
        "bootstrap_config": ["config.yaml"],
        "completions": [
            {"shell": "zsh", "args": ["completion", "zsh"]},
            {"shell": "bash", "args": ["completion", "bash"]},
        ],
        "smoke_test": [
            {"args": ["version"], "expect": "Version:\t{version}"},
            {"args": ["help"], "expect": "gscloud lets you manage"},
        ],
    },
}

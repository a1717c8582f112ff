from __future__ import annotations

import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path

import PIL.Image

BACKGROUNDS_ROOT = Path("backgrounds")
Y_RANGE = "-0.5,+0.5"


@dataclass
class Background:
    width: int
    height: int

    @property
    def stem(self) -> str:
        return f"thorn_{self.width:04d}_{self.height:04d}"

    def pgm_path(self) -> Path:
        return BACKGROUNDS_ROOT / f"{self.stem}.pgm"

    def png_path(self) -> Path:
        return BACKGROUNDS_ROOT / f"{self.stem}.png"

    def full_args(self) -> list[str]:
        return [
            sys.executable,
            "render.py",
            "--size",
            f"{self.width},{self.height}",
            f"--y-range={Y_RANGE}",
            str(self.pgm_path()),
        ]


BACKGROUNDS: list[Background] = [
    Background(2560, 1440),
    Background(1920, 1080),
    Background(1600, 900),
]


def _convert(pgm_path: Path, png_path: Path) -> None:
    with PIL.Image.open(pgm_path) as image:
        image.save(png_path, format="PNG")


def main() -> None:
    BACKGROUNDS_ROOT.mkdir(parents=True, exist_ok=True)
    for background in BACKGROUNDS:
        print(f"\n[background] {background.stem}")
        subprocess.run(background.full_args(), check=True)
        pgm_path = background.pgm_path()
        if not pgm_path.is_file():
            raise RuntimeError(f"Expected file {pgm_path} was not created")
        _convert(pgm_path, background.png_path())
        pgm_path.unlink()
    print("\nAll backgrounds generated successfully.")


if __name__ == "__main__":
    main()

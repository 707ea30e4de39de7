"""Headless-safe plotting adapters."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Tuple


class PlotAdapter:
    """Collect per-epoch loss and accuracy and optionally draw them."""

    def __init__(self, run_dir: str | Path, enable_plots: bool = False, *, split: str = "train"):
        self.enable_plots = enable_plots
        self.run_dir = Path(run_dir)
        self.split = split
        self._history: Dict[str, List[Tuple[int, float]]] = {"loss": [], "accuracy": []}
        if self.enable_plots:
            self.run_dir.mkdir(parents=True, exist_ok=True)

    def on_epoch(self, epoch: int, metrics):
        if not self.enable_plots:
            return
        for name, series in self._history.items():
            if name in metrics:
                series.append((epoch, float(metrics[name])))

    def close(self) -> List[Path]:
        if not self.enable_plots:
            return []
        import matplotlib

        matplotlib.use("Agg", force=True)
        import matplotlib.pyplot as plt  # imported lazily for headless safety

        written: List[Path] = []
        for name, series in self._history.items():
            if not series:
                continue
            epochs, values = zip(*series)
            fig, ax = plt.subplots()
            ax.plot(epochs, values, marker="o")
            ax.set_xlabel("Epoch")
            ax.set_ylabel(name.capitalize())
            ax.set_title(f"{self.split.capitalize()} {name}")
            plot_path = self.run_dir / f"{self.split}_{name}.png"
            fig.savefig(plot_path)
            plt.close(fig)
            written.append(plot_path)
        return written

    __call__ = on_epoch

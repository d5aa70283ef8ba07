import os

import numpy as np
import matplotlib
matplotlib.use('Agg')
from matplotlib import rcParams as rc

# Shared figure style for the schurlas plots. LaTeX text rendering is opt-in
# (SCHURLAS_USETEX=1) since most machines running the sweeps have no TeX.
Fontsize = 18
USETEX = os.environ.get("SCHURLAS_USETEX", "0") not in ("", "0", "false", "False")

rc["legend.markerscale"] = 1.5
rc["legend.framealpha"] = 0
rc["legend.labelspacing"] = 0.1
rc['figure.figsize'] = (12, 7)
rc['axes.autolimit_mode'] = 'data'
rc['axes.xmargin'] = 0
rc['axes.ymargin'] = 0.10
rc['axes.titlesize'] = Fontsize
rc['axes.labelsize'] = Fontsize
rc['xtick.direction'] = 'in'
rc['ytick.direction'] = 'in'
rc['xtick.labelsize'] = Fontsize
rc['ytick.labelsize'] = Fontsize
rc['axes.grid'] = True
rc['grid.linestyle'] = '-'
rc['grid.alpha'] = 0.2
rc['legend.fontsize'] = int(Fontsize*0.9)
rc['legend.loc'] = 'upper left'
rc["figure.autolayout"] = True
rc["savefig.dpi"] = 200
rc["lines.markeredgecolor"] = matplotlib.colors.to_rgba('black', 0.5)
rc["lines.markeredgewidth"] = 0.01
if USETEX:
  rc.update({
    "text.usetex": True,
    "font.family": "serif",
    "text.latex.preamble": r'\usepackage{amssymb}',
  })


def set_fontsizes(fontsize):
  rc['axes.labelsize'] = fontsize
  rc['xtick.labelsize'] = fontsize
  rc['ytick.labelsize'] = fontsize
  rc['legend.fontsize'] = int(fontsize*0.9)


# Circle, triangle, square, star, diamond
Markers = ['o', '^', 's', '*', 'D']
MarkerScales = np.array([1.1, 1.25, 1., 1.5, 1.])

# Fixed colors per impl label so the same solver keeps its color across plots.
ImplColors = {
  "schurlas":     "#1f77b4",
  "schurlas_sym": "#0D9276",
  "numpy":        "#d95f02",
}


def impl_color(impl, idx=0):
  return ImplColors.get(impl, f"C{idx % 10}")

"""Bus admittance matrix (Y-bus) construction.

For each branch with series impedance z and total charging B:
  Y_ii += y + jB/2
  Y_jj += y + jB/2
  Y_ij -= y
  Y_ji -= y
"""

from __future__ import annotations

import numpy as np

from loadflow.network_model import NetworkModel


def build_admittance_matrix(network: NetworkModel) -> np.ndarray:
    """Construct the N×N complex Y-bus in bus order.

    Expects a validated network (every branch has non-zero impedance and
    references existing buses).
    """
    n = network.n_bus
    y_bus = np.zeros((n, n), dtype=complex)

    for br in network.branches:
        i = network.bus_index[br.from_bus]
        j = network.bus_index[br.to_bus]

        y = 1.0 / br.z_pu
        shunt = 1j * br.b_pu / 2

        y_bus[i, i] += y + shunt
        y_bus[j, j] += y + shunt
        y_bus[i, j] -= y
        y_bus[j, i] -= y

    return y_bus

"""
_cpu_kernels.py
===============
CPU-parallel MRCA selection kernel using Numba.

This module contains ONLY numba-accelerated code and does not import other
project modules, to avoid import-time complications.

Exported Functions
------------------
_select_mrca_njit : njit function
    Evaluates the reduce-stage fold for every tip-set key at once.

Memory layout
-------------
Partial records are packed CSR-style, grouped by key:

  group_offsets  : int64  [n_groups + 1]   records of group g live in
                                            [group_offsets[g], group_offsets[g+1])
  node_ids       : int64  [n_records]
  branch_lengths : float64[n_records]
  tip_counts     : int64  [n_records]

Outputs are per group.  ``best_id_out[g] == -1`` marks a key with no record
of ``tip_count > 1``; the caller drops it.

Notes
-----
- Each group is summed sequentially in record order, so the totals are
  bit-identical to the pure-Python fold over the same order.
- cache=True persists the compiled binary to disk for faster later runs.
"""

from numba import njit, prange


@njit(parallel=True, cache=True)
def _select_mrca_njit(
        group_offsets,
        node_ids,
        branch_lengths,
        tip_counts,
        best_id_out,
        best_count_out,
        total_out):
    """
    Parallel (over groups) MRCA selection.

    Parameters
    ----------
    group_offsets  : int64[:]    CSR offsets, length n_groups + 1.
    node_ids       : int64[:]    NodeID of each partial record.
    branch_lengths : float64[:]  Branch length of each partial record.
    tip_counts     : int64[:]    Tip count of each partial record.
    best_id_out    : int64[:]    OUT  Selected NodeID per group, -1 if none.
    best_count_out : int64[:]    OUT  Tip count at the selected node.
    total_out      : float64[:]  OUT  Summed branch length per group.
    """
    n_groups = group_offsets.shape[0] - 1
    for g in prange(n_groups):
        best_id = -1
        best_count = 0
        total = 0.0
        for i in range(group_offsets[g], group_offsets[g + 1]):
            total += branch_lengths[i]
            count = tip_counts[i]
            if count > 1:
                nid = node_ids[i]
                if nid > best_id or (nid == best_id and count > best_count):
                    best_id = nid
                    best_count = count
        best_id_out[g] = best_id
        best_count_out[g] = best_count
        total_out[g] = total

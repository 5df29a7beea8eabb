"""Builders for synthetic PDB text used across tests."""

from src.utils.constants import AA_3TO1

AA_1TO3 = {v: k for k, v in AA_3TO1.items()}


def atom_line(serial, atom, res_name, chain, res_num, icode=" ", x=0.0, y=0.0, z=0.0):
    return (
        f"ATOM  {serial:5d} {atom:<4s} {res_name:>3s} {chain}{res_num:4d}{icode}   "
        f"{x:8.3f}{y:8.3f}{z:8.3f}  1.00  0.00           C"
    )


def make_pdb(chains: dict[str, str], atoms_per_residue=("N", "CA", "C")) -> str:
    """Build PDB text with one residue per letter for each chain."""
    lines = []
    serial = 1
    for chain, seq in chains.items():
        for i, aa in enumerate(seq, start=1):
            for atom in atoms_per_residue:
                lines.append(atom_line(serial, atom, AA_1TO3[aa], chain, i))
                serial += 1
        lines.append("TER")
    lines.append("END")
    return "\n".join(lines) + "\n"

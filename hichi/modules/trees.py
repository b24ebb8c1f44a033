"""
Tree schemas of the HiForest muon and conversion analyzers

Both analyzers store the same event information (run, lumi section, bunch
crossing, primary vertex) in their ``*_Event`` tree and their reconstructed
objects in the ``*_Reco`` tree. Four-vectors are split in px/py/pz/E
sub-branches sharing one counter, three-vectors in x/y/z.
"""

import numpy as np

from .tree_reader import Column, Kind, TreeReader


class HiForestTree(TreeReader):
    """Event information common to all HiForest analyzer trees"""

    Event_Run = Column("Event_Run", Kind.SCALAR, np.uint32)
    Event_Lumi = Column("Event_Lumi", Kind.SCALAR, np.uint16)
    Event_Bx = Column("Event_Bx", Kind.SCALAR, np.uint32)
    Event_Orbit = Column("Event_Orbit", Kind.SCALAR, np.uint64)
    Event_Number = Column("Event_Number", Kind.SCALAR, np.uint64)
    Event_nPV = Column("Event_nPV", Kind.SCALAR, np.uint8)
    Event_PriVtx_Pos = Column("Event_PriVtx_Pos", Kind.VECTOR3, np.float64)
    Event_PriVtx_Err = Column("Event_PriVtx_Err", Kind.VECTOR3, np.float64)


class HiConversionTree(HiForestTree):
    """Photon conversions combined with dimuons into χ candidates"""

    DIRECTORY = "convAna"
    TREES = {"Event": "Conversion_Event", "Reco": "Conversion_Reco"}

    Reco_DiMuonConv_Mom = Column("Reco_DiMuonConv_Mom", Kind.LORENTZ, np.float64)
    Reco_DiMuonConv_Conversion_Idx = Column("Reco_DiMuonConv_Conversion_Idx", Kind.ARRAY, np.uint16)
    Reco_DiMuonConv_DiMuon_Idx = Column("Reco_DiMuonConv_DiMuon_Idx", Kind.ARRAY, np.uint16)
    Reco_Chi_Mass = Column("Reco_Chi_Mass", Kind.ARRAY, np.float32)
    Reco_Chi_Type = Column("Reco_Chi_Type", Kind.ARRAY, np.uint8)


class HiMuonTree(HiForestTree):
    """Reconstructed muons and opposite-sign dimuon pairs"""

    DIRECTORY = "muonAna"
    TREES = {"Event": "Muon_Event", "Reco": "Muon_Reco"}

    Reco_Muon_Mom = Column("Reco_Muon_Mom", Kind.LORENTZ, np.float64)
    Reco_Muon_Charge = Column("Reco_Muon_Charge", Kind.ARRAY, np.int8)
    Reco_Muon_isGlobal = Column("Reco_Muon_isGlobal", Kind.ARRAY, np.bool_)
    Reco_Muon_isTracker = Column("Reco_Muon_isTracker", Kind.ARRAY, np.bool_)

    Reco_DiMuon_Mom = Column("Reco_DiMuon_Mom", Kind.LORENTZ, np.float64)
    Reco_DiMuon_Charge = Column("Reco_DiMuon_Charge", Kind.ARRAY, np.int8)
    Reco_DiMuon_Muon1_Idx = Column("Reco_DiMuon_Muon1_Idx", Kind.ARRAY, np.uint16)
    Reco_DiMuon_Muon2_Idx = Column("Reco_DiMuon_Muon2_Idx", Kind.ARRAY, np.uint16)
    Reco_DiMuon_VtxProb = Column("Reco_DiMuon_VtxProb", Kind.ARRAY, np.float32)

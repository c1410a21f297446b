from miselect.solvers.enet import ElasticNetPath, EnetFit
from miselect.solvers.grouplasso import GroupFit, GroupLassoPath
from miselect.solvers.irls import irls

__all__ = [
    "ElasticNetPath",
    "EnetFit",
    "GroupLassoPath",
    "GroupFit",
    "irls",
]

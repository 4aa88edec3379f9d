from mcmcore.proposals.block import BlockProposal
from mcmcore.proposals.discrete import BitFlipProposal, IntegerRandomWalk
from mcmcore.proposals.gaussianproposal import GaussianRandomWalk, IndependentProposal

__all__ = [
    "GaussianRandomWalk",
    "IndependentProposal",
    "IntegerRandomWalk",
    "BitFlipProposal",
    "BlockProposal",
]

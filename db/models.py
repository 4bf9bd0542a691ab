# WORKFLOW: Database model for the regions table.
# Used by: Record writer, tests
# Model represents:
# 1. regions - One row per region in the dump, ordered by update_order
#
# Data flow: regions.xml.gz -> XML events -> RegionRecord -> Region row

from sqlalchemy import Column, Integer, String, Text, Index
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class Region(Base):
    __tablename__ = "regions"

    # update_order is assigned by the accumulator in document order
    update_order = Column(Integer, primary_key=True, autoincrement=False)
    name = Column(String(50), nullable=False)
    title = Column(String(50), nullable=False)
    factbook = Column(Text, nullable=True)
    numnations = Column(Integer, nullable=False)
    nations = Column(Text, nullable=True)
    delegate = Column(String(50), nullable=True)
    delegatevotes = Column(Integer, nullable=False)
    founder = Column(String(50), nullable=True)
    power = Column(String(50), nullable=True)
    flag = Column(String(255), nullable=True)
    embassies = Column(Text, nullable=False, default="")

    __table_args__ = (
        Index('region_name', 'name'),
    )

    def __repr__(self) -> str:
        return f"<Region {self.update_order}: {self.name}>"

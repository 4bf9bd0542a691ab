# WORKFLOW: ETL package for loading the NationStates regions dump.
# Used by: CLI loader, tests
# Modules include:
# 1. region_source.py - Open/fetch the gzip byte stream and decompress it
# 2. xml_events.py - Event-driven XML reader (lxml, recover mode) and error sink
# 3. region_parser.py - Region record accumulator state machine and validation
# 4. region_writer.py - Persist finalized records into the regions table
# 5. load_regions.py - One-pass pipeline and per-run state
#
# ETL flow: regions.xml.gz -> Decompress -> XML events -> Region records -> regions table
# Document order is preserved in the update_order column.

"""
ETL package for the NationStates regions dump.
"""

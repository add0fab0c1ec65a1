"""Syntax, line parsing, data extraction and reachability pruning for assembly listings."""
# -*- coding: utf-8 -*-
"""Sandboxed execution of caller scripts."""

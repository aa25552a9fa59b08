"""CatchDeal: cafe board deal watcher and product link dissector."""

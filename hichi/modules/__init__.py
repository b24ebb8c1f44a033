"""Analysis modules: tree readers, histograms, selection and configuration"""

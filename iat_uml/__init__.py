"""Unsupervised Machine Learning Tutorial — Overview

This package walks students through unsupervised learning on the Race
Implicit Association Test (IAT) public dataset: IAT D-scores, feeling
thermometers, the 17-item MCPR scale and demographic variables.

0) Data cleaning (``iat_uml.data_cleaning``)
	- Why: techniques below need complete rows; missingness decides which
	  variables and respondents survive.
	- What you learn: missingness summaries and threshold-based pruning.

1) Partition clustering (``iat_uml.kmeans_clustering``, ``iat_uml.kmodes_clustering``)
	- Why: the simplest way to split respondents into K groups.
	- What you learn: elbow inspection, restarts, numeric vs categorical data.

2) Density clustering (``iat_uml.density_clustering``)
	- Why: clusters of arbitrary shape and explicit noise points.
	- What you learn: picking ``eps`` from a k-distance plot.

3) Hierarchical clustering (``iat_uml.hierarchical_clustering``)
	- Why: see the whole merge tree before choosing a cluster count.
	- What you learn: Ward's linkage, dendrograms and tree cuts.

4) Dimensionality reduction (``iat_uml.dimensionality_reduction``)
	- Why: summarise many correlated survey items with a few components.
	- What you learn: loadings, scores, scree plots and explained variance.

5) Market basket analysis (``iat_uml.association_rules``)
	- Why: find answer patterns that co-occur across respondents.
	- What you learn: support, confidence, lift and the Apriori algorithm.

Every step reads the cleaned dataset written by step 0 and writes
human-readable artifacts under ``outputs/`` so runs can be compared.
"""
